"""Pydantic-схемы ответов эндпоинта логина через Telegram."""

from pydantic import BaseModel, Field


class TelegramLoginUser(BaseModel):
    """Пользователь в ответе. hash и прочие служебные поля сюда не попадают."""

    id: int | str
    username: str | None = None
    first_name: str = ""
    last_name: str = ""
    photo_url: str | None = None


class TelegramLoginResponse(BaseModel):
    success: bool = True
    message: str = Field(default="Login successful")
    user: TelegramLoginUser


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
