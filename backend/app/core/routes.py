from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from backend.app.api.routers import api_router
from backend.app.utils.fastapi_state import get_app_state, get_backend_db


def setup_routes(app: FastAPI) -> None:
    # API
    app.include_router(api_router)

    # health
    @app.get("/ping", tags=["health"])
    async def ping() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health", tags=["health"])
    async def health(request: Request) -> dict[str, str]:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": get_app_state(request).settings.fast_api.service_name,
        }

    @app.get("/health/db", tags=["health"])
    async def health_db(request: Request) -> JSONResponse:
        db = get_backend_db(request)
        if await db.healthcheck():
            return JSONResponse({"database": "ok"})
        return JSONResponse({"database": "unavailable"}, status_code=503)

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root() -> str:
        return "Backend is working!"
