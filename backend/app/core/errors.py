import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.api.telegram_login.schemas import ErrorResponse
from packages.telegram_auth.errors import (
    MALFORMED_PAYLOAD_MESSAGE,
    USER_MESSAGES,
    ErrorCode,
    MalformedClaimSetError,
    TelegramAuthError,
)

logger = logging.getLogger(__name__)


def _error_response(exc: TelegramAuthError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.user_message).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """TelegramAuthError → {success: false, message}; прочее → 500 без деталей."""

    @app.exception_handler(TelegramAuthError)
    async def telegram_auth_error_handler(request: Request, exc: TelegramAuthError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # массив вместо объекта, битый JSON: тот же 400, что и у остальных ошибок клиента
        reasons = [err.get("msg") for err in exc.errors()]
        logger.info("Некорректное тело запроса %s %s: %s", request.method, request.url.path, reasons)
        return _error_response(MalformedClaimSetError(MALFORMED_PAYLOAD_MESSAGE))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("❌ Необработанная ошибка на %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(message=USER_MESSAGES[ErrorCode.INTERNAL_ERROR]).model_dump(),
        )
