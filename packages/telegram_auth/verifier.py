"""
Проверка подписи данных Telegram Login Widget.

Алгоритм (документация Telegram, Login Widget):
1. Убрать поле "hash", остальные поля отсортировать и склеить "key=value" через \\n.
2. secret_key = SHA256(bot_token): сырые байты, НЕ hex.
3. hash = HMAC_SHA256(secret_key, data_check_string) в hex.
4. Сравнить с присланным hash за постоянное время.

Внимание: у WebApp (initData) ключ выводится иначе: через HMAC("WebAppData", token).
Здесь только Login Widget.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import SecretStr

from packages.telegram_auth.claims import TelegramClaimSet
from packages.telegram_auth.errors import MalformedClaimSetError

if TYPE_CHECKING:
    from packages.common_settings.settings import TelegramSettings

logger = logging.getLogger(__name__)


def derive_secret_key(bot_token: str) -> bytes:
    return hashlib.sha256(bot_token.encode('utf-8')).digest()


def calc_login_hash(*, secret_key: bytes, data_check_string: str) -> str:
    return hmac.new(secret_key, data_check_string.encode('utf-8'), hashlib.sha256).hexdigest()


@dataclass(frozen=True, slots=True)
class TelegramLoginVerifier:
    """
    Проверяет подпись claim set против токена бота.

    Токен передаётся явно (обычно из настроек на старте) и дальше не меняется.
    Ключ выводится один раз в __post_init__.
    """

    bot_token: SecretStr = field(repr=False)
    _secret_key: bytes = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        token = self.bot_token.get_secret_value().strip()
        if not token:
            raise ValueError('Bot token is empty: refusing to verify Telegram logins')
        object.__setattr__(self, '_secret_key', derive_secret_key(token))

    @classmethod
    def from_settings(cls, telegram: TelegramSettings) -> TelegramLoginVerifier:
        return cls(bot_token=telegram.bot_token)

    def expected_hash(self, claims: TelegramClaimSet) -> str:
        return calc_login_hash(
            secret_key=self._secret_key,
            data_check_string=claims.data_check_string(),
        )

    def verify(self, claims: TelegramClaimSet | Mapping[str, Any] | None) -> bool:
        """
        True, если подпись сходится. Никогда не бросает исключений:
        отсутствующие данные, нет hash, значение не приводится к строке: False.
        """
        if claims is None:
            return False
        if not isinstance(claims, TelegramClaimSet):
            try:
                claims = TelegramClaimSet.from_payload(claims)
            except MalformedClaimSetError:
                return False

        received_hash = claims.hash
        if not received_hash:
            return False

        try:
            expected = self.expected_hash(claims)
        except (TypeError, ValueError) as exc:
            logger.debug('Не удалось собрать data_check_string: %s', exc)
            return False

        # compare_digest на str требует ASCII: сравниваем байты
        return hmac.compare_digest(expected.encode('ascii'), received_hash.encode('utf-8'))
