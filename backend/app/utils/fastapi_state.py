from __future__ import annotations

from fastapi import HTTPException, Request

from packages.app_state import AppState
from packages.db.database import Database
from packages.telegram_auth.normalizer import IdentityNormalizer
from packages.telegram_auth.verifier import TelegramLoginVerifier


def get_app_state(request: Request) -> AppState:
    """Достаёт AppState из FastAPI app.state (кладётся в create_app)."""
    state = getattr(request.app.state, "app_state", None)
    if state is None:
        raise HTTPException(status_code=500, detail="Состояние приложения не инициализировано")
    return state


def get_backend_db(request: Request) -> Database:
    """
    Достаёт Database из состояния приложения.
    Нейминг специально с 'backend', как и остальные хелперы.
    """
    db = get_app_state(request).db
    if db is None:
        raise HTTPException(status_code=500, detail="База данных не настроена (app_state.db отсутствует)")
    return db


def get_login_verifier(request: Request) -> TelegramLoginVerifier:
    return get_app_state(request).verifier


def get_identity_normalizer(request: Request) -> IdentityNormalizer:
    return get_app_state(request).normalizer
