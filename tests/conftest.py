import hashlib
import hmac
from collections.abc import Callable, Mapping
from typing import Any

import pytest

BOT_TOKEN = "123456:TEST-bot-token"

REQUIRED_ENV = {
    "TELEGRAM_BOT_TOKEN": BOT_TOKEN,
    "DB_HOST": "localhost",
    "DB_USER": "tg_login",
    "DB_PASSWORD": "db_secret",
    "DB_NAME": "tg_login",
}

OPTIONAL_ENV = (
    "TELEGRAM_ADMIN_ID",
    "TELEGRAM_NAME_MAX_LENGTH",
    "SENTRY_DSN",
    "CORS_ORIGINS",
    "ALLOWED_HOSTS",
    "DEBUG",
    "APP_ENV",
    "DB_SSLMODE",
    "DB_BOOTSTRAP_SCHEMA",
    "DB_PORT",
    "APP_HOST",
    "PORT",
)


def _sign(payload: Mapping[str, Any], bot_token: str = BOT_TOKEN) -> str:
    """Подпись как у Telegram: независимо от кода приложения (только str/int значения)."""

    data_check_string = "\n".join(f"{k}={v}" for k, v in sorted(payload.items()) if k != "hash")
    secret_key = hashlib.sha256(bot_token.encode()).digest()
    return hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def sign() -> Callable[..., str]:
    return _sign


@pytest.fixture
def signed_payload() -> Callable[..., dict[str, Any]]:
    """Собрать payload виджета с корректным hash."""

    def _build(bot_token: str = BOT_TOKEN, **fields: Any) -> dict[str, Any]:
        return {**fields, "hash": _sign(fields, bot_token)}

    return _build


@pytest.fixture
def required_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Минимальное окружение, с которым сервис стартует."""

    for key in OPTIONAL_ENV:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(f"{key}_FILE", raising=False)
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
        monkeypatch.delenv(f"{key}_FILE", raising=False)
    return dict(REQUIRED_ENV)
