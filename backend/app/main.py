"""
Точка входа backend'а логина через Telegram.

FastAPI: POST /telegram-login, GET /health, GET /ping.
Запуск: `uvicorn backend.app.main:create_app --factory` или `python -m backend.app.main`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from backend.app.core import setup_exception_handlers, setup_middleware, setup_routes
from packages.app_state import AppState
from packages.common_settings.settings import Settings, load_settings
from packages.db.database import Database
from packages.db.models import Base
from packages.logging_config import setup_logging

logger = logging.getLogger(__name__)


def _build_database(settings: Settings) -> Database:
    return Database(
        db_url=settings.db.sqlalchemy_url(use_async=True),
        echo=settings.debug,
        pool_pre_ping=settings.db.pool_pre_ping,
        pool_recycle=settings.db.pool_recycle,
        connect_args=settings.db.connect_args_for_sqlalchemy(),
    )


def create_app(settings: Settings | None = None, *, db: Database | None = None) -> FastAPI:
    """
    Собрать приложение.

    Без настроек (нет TELEGRAM_BOT_TOKEN / доступа к БД) load_settings()
    завершает процесс до того, как появится хоть один обработчик.
    """
    settings = settings or load_settings()
    setup_logging(settings)

    state = AppState.from_settings(settings, db=db)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owns_db = state.db is None
        if owns_db:
            state.db = _build_database(settings)
        logger.info('БД подключена: %s', settings.db.safe_dict())

        if settings.db.bootstrap_schema:
            await state.db.create_all(Base.metadata)

        try:
            yield
        finally:
            if owns_db and state.db is not None:
                await state.db.dispose()
                state.db = None
            logger.info('Application stopped')

    app = FastAPI(
        title=settings.fast_api.service_name,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.app_state = state

    setup_middleware(app, settings)
    setup_exception_handlers(app)
    setup_routes(app)
    return app


def main() -> None:
    import uvicorn

    settings = load_settings()
    logger.info('Telegram login backend starting on port %s', settings.fast_api.port)
    uvicorn.run(
        'backend.app.main:create_app',
        factory=True,
        host=settings.fast_api.host,
        port=settings.fast_api.port,
        reload=False,
        log_level='debug' if settings.debug else 'info',
    )


if __name__ == '__main__':
    main()
