"""Сценарий логина через Telegram Login Widget."""

import logging
from collections.abc import Mapping
from typing import Any

from backend.app.api.telegram_login import services
from backend.app.api.telegram_login.schemas import TelegramLoginResponse, TelegramLoginUser
from packages.db.database import Database
from packages.telegram_auth.claims import TelegramClaimSet, ensure_required_fields
from packages.telegram_auth.errors import InvalidSignatureError
from packages.telegram_auth.normalizer import IdentityNormalizer
from packages.telegram_auth.verifier import TelegramLoginVerifier

logger = logging.getLogger(__name__)


async def process_telegram_login(
    payload: Mapping[str, Any] | None,
    *,
    verifier: TelegramLoginVerifier,
    normalizer: IdentityNormalizer,
    db: Database,
) -> TelegramLoginResponse:
    """
    payload → проверка id/hash → подпись → нормализация → upsert.

    Ошибки: подклассы TelegramAuthError, в HTTP их переводит обработчик исключений.
    До upsert дело доходит только при валидной подписи.
    """
    claims = TelegramClaimSet.from_payload(payload)
    ensure_required_fields(claims)

    if not verifier.verify(claims):
        logger.warning("Неверная подпись Telegram для id=%s", claims.id)
        raise InvalidSignatureError()

    record = normalizer.normalize(claims)
    await services.save_telegram_user(db, record)
    logger.info("✅ Вход через Telegram: telegram_id=%s", record.telegram_id)

    return TelegramLoginResponse(
        user=TelegramLoginUser(
            id=claims.id,
            username=record.username,
            first_name=record.first_name,
            last_name=record.last_name,
            photo_url=record.picture,
        )
    )
