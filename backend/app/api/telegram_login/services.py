"""
Сервисный слой логина: сохранение пользователя в БД.

Сценарий целиком (проверка → нормализация → upsert): в `workflows`.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from packages.db.database import Database
from packages.db.models import User
from packages.db.repository import UserRepository
from packages.db.schemas import TelegramUserUpsert
from packages.telegram_auth.errors import PersistenceError

logger = logging.getLogger(__name__)


async def save_telegram_user(db: Database, record: TelegramUserUpsert) -> User:
    """
    Upsert пользователя по telegram_id. Одна попытка, без ретраев.

    Ошибка БД (включая недоступный сервер: OSError от драйвера) логируется,
    наружу уходит PersistenceError без деталей.
    """
    try:
        async with db.session() as session:
            return await UserRepository.upsert(session, record)
    except (SQLAlchemyError, OSError) as exc:
        logger.exception("Не удалось сохранить пользователя telegram_id=%s", record.telegram_id)
        raise PersistenceError() from exc
