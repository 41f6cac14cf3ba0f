"""
Нормализация проверенного claim set в запись пользователя.

Вызывается только после успешной проверки подписи.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from packages.db.schemas import TelegramUserUpsert
from packages.telegram_auth.claims import ClaimValue, TelegramClaimSet, render_claim_value
from packages.telegram_auth.errors import MalformedClaimSetError

if TYPE_CHECKING:
    from packages.common_settings.settings import TelegramSettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 100  # ограничение колонок users.* (String(100))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_text(value: ClaimValue) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return render_claim_value(value)


def parse_auth_date(value: ClaimValue) -> datetime | None:
    """auth_date (секунды epoch, int или строка) → UTC datetime; мусор → None."""

    if not value or isinstance(value, bool):
        return None
    try:
        seconds = value if isinstance(value, (int, float)) else int(str(value).strip())
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.warning('Некорректный auth_date в данных Telegram: %r', value)
        return None


@dataclass(frozen=True, slots=True)
class IdentityNormalizer:
    """
    Приводит данные виджета к `TelegramUserUpsert`.

    - строки обрезаются по краям и до max_length;
    - если last_name пустой, а в first_name есть пробел: делим по первому пробелу;
    - last_login всегда «сейчас» (clock можно подменить в тестах).
    """

    max_length: int = DEFAULT_MAX_LENGTH
    clock: Callable[[], datetime] = field(default=utcnow, compare=False)

    @classmethod
    def from_settings(cls, telegram: TelegramSettings) -> IdentityNormalizer:
        return cls(max_length=telegram.name_max_length)

    def sanitize(self, value: ClaimValue) -> str:
        return _as_text(value).strip()[: self.max_length].rstrip()

    def split_name(self, first_name: str, last_name: str) -> tuple[str, str]:
        if last_name or ' ' not in first_name:
            return first_name, last_name
        head, _, tail = first_name.partition(' ')
        return head, ' '.join(tail.split())

    def normalize(self, claims: TelegramClaimSet) -> TelegramUserUpsert:
        try:
            telegram_id = render_claim_value(claims.id).strip() if claims.id is not None else ''
        except (TypeError, ValueError):
            telegram_id = ''
        if not telegram_id:
            raise MalformedClaimSetError()

        first_name, last_name = self.split_name(
            self.sanitize(claims.first_name),
            self.sanitize(claims.last_name),
        )
        username = self.sanitize(claims.username) or None
        picture = _as_text(claims.photo_url) or None

        return TelegramUserUpsert(
            telegram_id=telegram_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            picture=picture,
            auth_date=parse_auth_date(claims.auth_date),
            last_login=self.clock(),
        )
