"""FastAPI-роутер логина через Telegram Login Widget."""

from typing import Any

from fastapi import APIRouter, Body, Depends

from backend.app.api.telegram_login.schemas import ErrorResponse, TelegramLoginResponse
from backend.app.api.telegram_login.workflows import process_telegram_login
from backend.app.utils.fastapi_state import (
    get_backend_db,
    get_identity_normalizer,
    get_login_verifier,
)
from packages.db.database import Database
from packages.telegram_auth.normalizer import IdentityNormalizer
from packages.telegram_auth.verifier import TelegramLoginVerifier

telegram_login_router = APIRouter()


@telegram_login_router.post(
    "/telegram-login",
    response_model=TelegramLoginResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def telegram_login(
    payload: dict[str, Any] | None = Body(default=None),
    verifier: TelegramLoginVerifier = Depends(get_login_verifier),
    normalizer: IdentityNormalizer = Depends(get_identity_normalizer),
    db: Database = Depends(get_backend_db),
) -> TelegramLoginResponse:
    """Принять данные виджета, проверить подпись и сохранить пользователя."""

    return await process_telegram_login(payload, verifier=verifier, normalizer=normalizer, db=db)
