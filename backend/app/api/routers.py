from fastapi import APIRouter

from backend.app.api.telegram_login import telegram_login_router

api_router = APIRouter()

# Telegram Login Widget
api_router.include_router(telegram_login_router, tags=["telegram-login"])
