from __future__ import annotations

from enum import Enum
from typing import Dict


class ErrorCode(str, Enum):
    MALFORMED_INPUT = 'MALFORMED_INPUT'
    INVALID_SIGNATURE = 'INVALID_SIGNATURE'
    PERSISTENCE_FAILED = 'PERSISTENCE_FAILED'
    INTERNAL_ERROR = 'INTERNAL_ERROR'


# Тексты уходят клиенту как есть, поэтому никаких деталей внутри.
USER_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.MALFORMED_INPUT: (
        'Missing required fields: id and hash are required'
    ),
    ErrorCode.INVALID_SIGNATURE: 'Invalid Telegram authentication data',
    ErrorCode.PERSISTENCE_FAILED: 'Database error occurred',
    ErrorCode.INTERNAL_ERROR: 'Internal server error',
}

# 400 для payload, который не разобрать: не объект, вложенные значения, битый JSON
MALFORMED_PAYLOAD_MESSAGE = 'Malformed Telegram authentication data'

HTTP_STATUSES: Dict[ErrorCode, int] = {
    ErrorCode.MALFORMED_INPUT: 400,
    ErrorCode.INVALID_SIGNATURE: 401,
    ErrorCode.PERSISTENCE_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


class TelegramAuthError(Exception):
    """Базовая ошибка логина через Telegram."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str | None = None) -> None:
        self.user_message = message or USER_MESSAGES[self.code]
        super().__init__(self.user_message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUSES[self.code]


class MalformedClaimSetError(TelegramAuthError):
    """Нет id/hash или в payload лежит не скаляр."""

    code = ErrorCode.MALFORMED_INPUT


class InvalidSignatureError(TelegramAuthError):
    code = ErrorCode.INVALID_SIGNATURE


class PersistenceError(TelegramAuthError):
    """Upsert пользователя не прошёл. Причина: в логах, не в ответе."""

    code = ErrorCode.PERSISTENCE_FAILED
