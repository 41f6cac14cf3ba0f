from .router import telegram_login_router

__all__ = ["telegram_login_router"]
