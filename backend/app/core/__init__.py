from backend.app.core.errors import setup_exception_handlers
from backend.app.core.middleware import setup_middleware
from backend.app.core.routes import setup_routes

__all__ = [
    "setup_exception_handlers",
    "setup_middleware",
    "setup_routes",
]
