from .database import Database
from .models import Base, User
from .repository import UserRepository
from .schemas import TelegramUserUpsert

__all__ = [
    "Database",
    "Base",
    "User",
    "UserRepository",
    "TelegramUserUpsert",
]
