from .settings import (
    DatabaseSettings,
    FastApiSettings,
    SentrySettings,
    Settings,
    TelegramSettings,
    get_settings,
    load_settings,
)

__all__ = [
    "DatabaseSettings",
    "FastApiSettings",
    "SentrySettings",
    "Settings",
    "TelegramSettings",
    "get_settings",
    "load_settings",
]
