from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# ===================== USER =====================


class TelegramUserUpsert(BaseModel):
    """
    Нормализованный пользователь Telegram: ровно то, что пишем в `users`.

    Ключ upsert: telegram_id. При конфликте перезаписываются все поля ниже
    (last-write-wins, без слияния).
    """

    model_config = ConfigDict(frozen=True)

    telegram_id: str = Field(..., min_length=1)
    username: str | None = None
    first_name: str = ''
    last_name: str = ''
    picture: str | None = None
    auth_date: datetime | None = None
    last_login: datetime

