from __future__ import annotations

import json
import logging
import ssl
from collections.abc import Sequence
from enum import Enum
from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import (
    AnyUrl,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from sqlalchemy.engine import URL

from packages.common_settings.base import BaseAppSettings

logger = logging.getLogger(__name__)


class SslMode(str, Enum):
    """
    Режимы SSL для подключения к PostgreSQL.
    Используется в SQLAlchemy URL.
    """
    disable = 'disable'
    require = 'require'
    verify_ca = 'verify-ca'
    verify_full = 'verify-full'


class DatabaseSettings(BaseAppSettings):
    """
    Хранилище пользователей (PostgreSQL): адрес + учётные данные.
    Все обязательные поля должны быть непустыми, иначе старт не состоится.
    """

    host: str = Field(..., alias='DB_HOST')
    port: int = Field(default=5432, alias='DB_PORT')
    username: str = Field(..., alias='DB_USER')
    password: SecretStr = Field(..., alias='DB_PASSWORD')
    database_name: str = Field(..., alias='DB_NAME')

    ssl_mode: Optional[SslMode] = Field(default=None, alias='DB_SSLMODE')
    ssl_root_cert_file: Optional[str] = Field(
        default=None, alias='DB_SSLROOTCERT'
    )

    # dev-bootstrap: Base.metadata.create_all() на старте вместо Alembic
    bootstrap_schema: bool = Field(default=False, alias='DB_BOOTSTRAP_SCHEMA')
    pool_pre_ping: bool = Field(default=True, alias='DB_POOL_PRE_PING')
    pool_recycle: int = Field(default=1800, alias='DB_POOL_RECYCLE')

    @model_validator(mode='after')
    def _validate_required(self) -> DatabaseSettings:
        problems = []
        if not self.host.strip():
            problems.append('host')
        if not self.username.strip():
            problems.append('username')
        if not self.password.get_secret_value().strip():
            problems.append('password')
        if not self.database_name.strip():
            problems.append('database_name')
        if problems:
            raise ValueError(
                f'DB config incomplete: set {", ".join(problems)}'
            )
        return self

    @property
    def _is_local_host(self) -> bool:
        return self.host.lower() in {'localhost', '127.0.0.1', '::1', 'db'}

    def _effective_ssl_mode(self) -> SslMode:
        """
        Если DB_SSLMODE не задан: локальные хосты без SSL,
        остальные: 'require'.
        """
        if self.ssl_mode is not None:
            return self.ssl_mode
        return SslMode.disable if self._is_local_host else SslMode.require

    def sqlalchemy_url(self, *, use_async: bool = True) -> URL:
        """
        - use_async=True  -> postgresql+asyncpg (приложение)
        - use_async=False -> postgresql+psycopg (Alembic)
        """
        driver = 'asyncpg' if use_async else 'psycopg'

        # sslmode в query понимает только libpq (sync)
        query: dict[str, Sequence[str] | str] = {}
        if not use_async:
            query['sslmode'] = self._effective_ssl_mode().value
            if self.ssl_root_cert_file:
                query['sslrootcert'] = self.ssl_root_cert_file

        return URL.create(
            drivername=f'postgresql+{driver}',
            username=self.username,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.database_name,
            query=query,
        )

    def connect_args_for_sqlalchemy(self) -> dict[str, Any]:
        """SSL для asyncpg передаётся через ssl.SSLContext, а не через URL."""

        effective_ssl = self._effective_ssl_mode()
        if effective_ssl == SslMode.disable:
            return {}

        ctx = ssl.create_default_context()
        if effective_ssl == SslMode.require:
            # мягкий SSL: без проверки CA/host
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        else:
            if self.ssl_root_cert_file:
                ctx.load_verify_locations(cafile=self.ssl_root_cert_file)
            if effective_ssl == SslMode.verify_ca:
                ctx.check_hostname = False
        return {'ssl': ctx}

    def safe_dict(self) -> dict[str, Any]:
        return {
            'host': self.host,
            'port': self.port,
            'username': self.username,
            'password': '***',
            'database_name': self.database_name,
            'ssl_mode': self._effective_ssl_mode().value,
        }


class TelegramSettings(BaseAppSettings):
    """
    Telegram: токен бота (общий секрет для проверки подписи виджета),
    и, опционально, админ для уведомлений об ошибках.
    """
    bot_token: SecretStr = Field(alias='TELEGRAM_BOT_TOKEN')
    admin_id: Optional[int] = Field(default=None, alias='TELEGRAM_ADMIN_ID')
    name_max_length: int = Field(
        default=100, alias='TELEGRAM_NAME_MAX_LENGTH', gt=0
    )

    @field_validator('bot_token')
    @classmethod
    def _bot_token_not_blank(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError('TELEGRAM_BOT_TOKEN is empty')
        return v


class SentrySettings(BaseAppSettings):
    """DSN Sentry. Пусто: Sentry не подключаем."""

    dsn: Optional[AnyUrl] = Field(default=None, alias='SENTRY_DSN')


class FastApiSettings(BaseAppSettings):
    """ Конфигуратор FastAPI """
    allowed_hosts: list[str] = Field(default_factory=list, alias='ALLOWED_HOSTS')
    host: str = Field(default='0.0.0.0', alias='APP_HOST')
    port: int = Field(default=3000, alias='PORT')
    service_name: str = 'Telegram Login Backend'

    @field_validator('allowed_hosts', mode='before')
    @classmethod
    def split_allowed_hosts(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [x.strip() for x in v.split(',') if x.strip()]
        return v


class Settings(BaseAppSettings):
    """
    Основные настройки: окружение, отладка, БД, Telegram, Sentry, HTTP.
    """
    env: Literal['local', 'dev', 'staging', 'prod'] = Field(
        default='prod', alias='APP_ENV'
    )
    debug: bool = Field(default=False, alias='DEBUG')

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)
    fast_api: FastApiSettings = Field(default_factory=FastApiSettings)
    # CORS: JSON-список или CSV; пусто: разрешаем всех (виджет живёт на чужом домене)
    cors_origins_raw: str | None = Field(default=None, alias='CORS_ORIGINS')

    @property
    def cors_origins(self) -> list[str]:
        s = self.cors_origins_raw
        if not s:
            return ['*']
        try:
            data = json.loads(s)
            if isinstance(data, list):
                return [str(x).strip() for x in data if str(x).strip()]
        except json.JSONDecodeError:
            pass
        return [x.strip() for x in s.split(',') if x.strip()]

    def safe_dict(self) -> dict[str, Any]:
        return {
            'env': self.env,
            'debug': self.debug,
            'db': self.db.safe_dict(),
            'telegram': {
                'bot_token': '***',
                'admin_id': self.telegram.admin_id,
                'name_max_length': self.telegram.name_max_length,
            },
            'sentry': {'dsn': '***' if self.sentry.dsn else None},
            'cors_origins': self.cors_origins,
        }


def load_settings() -> Settings:
    """
    Загрузить настройки из окружения.

    Нет токена бота или доступа к БД: процесс не стартует (SystemExit),
    а не работает «без проверки».
    """
    try:
        settings = Settings()
    except ValidationError as e:
        logger.critical('❌ Ошибка конфигурации: %s', _describe_errors(e))
        raise SystemExit(
            'Остановка: отсутствуют обязательные '
            'переменные окружения или заданы неверно.'
        ) from e
    logger.info('✅ Конфигурация загружена')
    logger.debug('Config dump: %s', settings.safe_dict())
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Ленивая загрузка без побочных эффектов при импорте."""
    return load_settings()


def _describe_errors(e: ValidationError) -> list[dict[str, Any]]:
    # input может содержать секреты: в лог только место и причину
    return [
        {'loc': err.get('loc'), 'msg': err.get('msg')}
        for err in e.errors()
    ]
