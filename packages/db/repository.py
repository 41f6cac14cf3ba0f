import logging
from typing import Any

from sqlalchemy.dialects.postgresql import Insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from packages.db.models import User
from packages.db.schemas import TelegramUserUpsert

logger = logging.getLogger(__name__)


class UserRepository:
    model = User

    # created_at остаётся от первой вставки, остальное перезаписываем
    UPSERT_KEY = "telegram_id"

    @classmethod
    def build_upsert(cls, payload: TelegramUserUpsert) -> Insert:
        """INSERT ... ON CONFLICT (telegram_id) DO UPDATE ... RETURNING users.*"""

        values: dict[str, Any] = payload.model_dump()
        stmt = pg_insert(cls.model).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[cls.model.telegram_id],
            set_={key: stmt.excluded[key] for key in values if key != cls.UPSERT_KEY},
        ).returning(cls.model)

    @classmethod
    async def upsert(cls, session: AsyncSession, payload: TelegramUserUpsert) -> User:
        """
        Вставить или обновить пользователя по telegram_id (last-write-wins).
        Одна попытка: ошибки SQLAlchemy летят наверх как есть.
        """
        stmt = cls.build_upsert(payload)
        result = await session.scalars(
            stmt,
            execution_options={"populate_existing": True},
        )
        user = result.one()
        logger.debug("👤 Upsert users: telegram_id=%s id=%s", user.telegram_id, user.id)
        return user
