import json
import os
from pathlib import Path
from typing import Any, get_args, get_origin

from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import EnvSettingsSource, PydanticBaseSettingsSource


def _read_secret_file(file_env: str) -> str | None:
    """Прочитать значение из файла, путь к которому лежит в `<KEY>_FILE`."""

    file_path = os.getenv(file_env)
    if not file_path:
        return None
    p = Path(file_path).expanduser().resolve()
    if not p.is_file():
        raise ValueError(f"{file_env} points to missing file: {p}")
    return p.read_text().strip()


def _is_list_of_str(field: FieldInfo) -> bool:
    origin = get_origin(field.annotation)
    args = get_args(field.annotation)
    return origin in (list, tuple) and len(args) == 1 and args[0] is str


def _looks_like_json(s: str) -> bool:
    return (
        s.startswith("[")
        or s.startswith("{")
        or s.startswith('"')
        or s in ("null", "true", "false")
        or bool(s and s[0] in "-0123456789")
    )


class FileAwareEnvSource(EnvSettingsSource):
    """
    Источник ENV с поддержкой fallback на <ENV>_FILE (docker/k8s secrets).
    Приоритет: ENV > ENV_FILE.

    Для полей list[str] понимает CSV: 'a, b, c' → ['a', 'b', 'c'].
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        value, key, is_complex = super().get_field_value(field, field_name)

        # пусто в окружении: пробуем <KEY>_FILE (key уже учитывает alias)
        if value in (None, ""):
            from_file = _read_secret_file(f"{key}_FILE")
            if from_file is not None:
                value = from_file
                is_complex = False

        if isinstance(value, str) and _is_list_of_str(field):
            s = value.strip()
            if not _looks_like_json(s):
                value = json.dumps([x.strip() for x in s.split(",") if x.strip()])
                is_complex = True

        return value, key, is_complex


class BaseAppSettings(BaseSettings):
    """Базовый класс настроек: frozen, .env, наш ENV/ENV_FILE источник."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # kwargs -> ENV/ENV_FILE -> .env -> secrets_dir
        return (
            init_settings,
            FileAwareEnvSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )
