import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import MetaData, text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)


class Database:
    """
    Асинхронный менеджер БД на SQLAlchemy 2.0.

    - Управляет AsyncEngine и AsyncSession.
    - Можно передать готовый AsyncEngine (для тестов) или URL (str/URL).
    - URL должен быть АСИНХРОННЫМ (postgresql+asyncpg).
    """

    def __init__(
        self,
        db_url: str | URL | None = None,
        engine: AsyncEngine | None = None,
        *,
        echo: bool = False,
        pool_pre_ping: bool = True,
        pool_recycle: int = 1800,
        connect_args: dict[str, Any] | None = None,
    ) -> None:
        if engine is not None:
            self.engine: AsyncEngine = engine
            safe = getattr(
                engine.sync_engine.url,
                "render_as_string",
                lambda **_: "<engine>",
            )(hide_password=True)
            logger.info("🚀 Async DB engine injected: %s", safe)
        else:
            if db_url is None:
                raise ValueError("Нужен db_url или готовый engine.")
            # защита от sync-драйвера в асинхронном классе
            is_async = (isinstance(db_url, URL) and db_url.drivername.endswith("+asyncpg")) or (
                isinstance(db_url, str) and "asyncpg" in db_url
            )
            if not is_async:
                raise ValueError(
                    "Получен sync-драйвер для асинхронного Database. " "Соберите async URL (postgresql+asyncpg)."
                )

            self.engine = create_async_engine(
                db_url,
                echo=echo,
                pool_pre_ping=pool_pre_ping,
                pool_recycle=pool_recycle,
                connect_args=connect_args or {},
            )

            safe = db_url.render_as_string(hide_password=True) if isinstance(db_url, URL) else "<masked url>"
            logger.info("🚀 Async DB engine created for %s", safe)

        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
        )

    async def dispose(self) -> None:
        """Закрыть все соединения пула (использовать при shutdown)."""
        await self.engine.dispose()
        logger.info("🧹 Async DB engine disposed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Контекстный менеджер с авто-commit/rollback.

        Пример:
            async with db.session() as session:
                await UserRepository.upsert(session, payload)
        """
        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            logger.exception("❌ Error in Async DB session")
            await session.rollback()
            raise
        finally:
            await session.close()

    async def healthcheck(self) -> bool:
        """Лёгкая проверка доступности БД."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("❌ DB healthcheck failed")
            return False

    async def create_all(self, base_metadata: MetaData) -> None:
        """Bootstrap схемы (dev-only), в проде: Alembic."""
        async with self.engine.begin() as conn:
            await conn.run_sync(base_metadata.create_all)
        logger.info("📦 Metadata.create_all() done")
