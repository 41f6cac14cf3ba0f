"""
Claim set от Telegram Login Widget.

Виджет присылает плоский JSON: id, first_name, last_name, username, photo_url,
auth_date и hash. Всё, кроме hash, подписано ботом Telegram. Если Telegram
добавит новые поля, они тоже войдут в подпись, поэтому неизвестные ключи
не выбрасываем, а складываем в `extra_fields`.

Строка для проверки (data_check_string):
    key=value по всем полям кроме hash, сортировка по ключу, разделитель \\n.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from operator import itemgetter
from types import MappingProxyType
from typing import Any, Union

from packages.telegram_auth.errors import (
    MALFORMED_PAYLOAD_MESSAGE,
    MalformedClaimSetError,
)

HASH_FIELD = 'hash'
KNOWN_FIELDS = (
    'id',
    'first_name',
    'last_name',
    'username',
    'photo_url',
    'auth_date',
)

ClaimValue = Union[str, int, float, bool, None]

_SCALAR_TYPES = (str, int, float, bool)


def render_claim_value(value: ClaimValue) -> str:
    """
    Привести значение поля к строке так же, как это сделал Telegram при подписи.

    Числа: обычная десятичная запись без экспоненты, `42.0` → `42`.
    bool и null: как в JSON. NaN/Infinity и нескаляры не подписываются
    ни при каких условиях: ValueError/TypeError.
    """
    if value is None:
        return 'null'
    # bool: подкласс int, проверяем раньше
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f'Non-finite number cannot be signed: {value!r}')
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), 'f')
    if isinstance(value, str):
        return value
    raise TypeError(f'Unsupported claim value type: {type(value).__name__}')


def _is_blank(value: ClaimValue) -> bool:
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, str):
        return not value.strip()
    return value == 0


@dataclass(frozen=True, slots=True)
class TelegramClaimSet:
    """
    Данные виджета: известные поля + `extra_fields` для всего остального.

    `present`: какие ключи реально пришли в payload. Явный null и
    отсутствующее поле: разные вещи для подписи. Известные поля не None и
    ключи `extra_fields` подписываются всегда, `present` лишь добавляет
    поля, пришедшие как null.
    """

    id: ClaimValue = None
    hash: str | None = None
    first_name: ClaimValue = None
    last_name: ClaimValue = None
    username: ClaimValue = None
    photo_url: ClaimValue = None
    auth_date: ClaimValue = None
    extra_fields: Mapping[str, ClaimValue] = field(
        default_factory=lambda: MappingProxyType({})
    )
    present: frozenset[str] | None = None

    def __post_init__(self) -> None:
        extra = MappingProxyType(dict(self.extra_fields))
        object.__setattr__(self, 'extra_fields', extra)
        present = {
            name for name in KNOWN_FIELDS if getattr(self, name) is not None
        }
        present.update(extra)
        if self.present is not None:
            # явный null: поле пришло, но без значения
            present.update(name for name in self.present if name in KNOWN_FIELDS)
        object.__setattr__(self, 'present', frozenset(present))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> TelegramClaimSet:
        """Разобрать JSON-объект из запроса. Вложенные объекты/массивы: MalformedClaimSetError."""

        if payload is None or not isinstance(payload, Mapping):
            raise MalformedClaimSetError()

        known: dict[str, Any] = {}
        extra: dict[str, ClaimValue] = {}
        for key, value in payload.items():
            if not isinstance(key, str):
                raise MalformedClaimSetError(MALFORMED_PAYLOAD_MESSAGE)
            if value is not None and not isinstance(value, _SCALAR_TYPES):
                raise MalformedClaimSetError(MALFORMED_PAYLOAD_MESSAGE)
            if key == HASH_FIELD:
                if value is not None and not isinstance(value, str):
                    raise MalformedClaimSetError(MALFORMED_PAYLOAD_MESSAGE)
                known[key] = value
            elif key in KNOWN_FIELDS:
                known[key] = value
            else:
                extra[key] = value

        return cls(
            **known,
            extra_fields=MappingProxyType(extra),
            present=frozenset(payload.keys()),
        )

    def signed_items(self) -> Iterator[tuple[str, ClaimValue]]:
        """Все пришедшие поля, кроме hash (порядок не определён)."""

        for name in KNOWN_FIELDS:
            if name in self.present:
                yield name, getattr(self, name)
        yield from self.extra_fields.items()

    def data_check_string(self) -> str:
        items = sorted(self.signed_items(), key=itemgetter(0))
        return '\n'.join(f'{k}={render_claim_value(v)}' for k, v in items)

    def has_required_fields(self) -> bool:
        return not _is_blank(self.id) and bool(self.hash)


def ensure_required_fields(claims: TelegramClaimSet) -> None:
    """Отбраковать payload без id/hash ещё до какой-либо криптографии."""

    if not claims.has_required_fields():
        raise MalformedClaimSetError()
