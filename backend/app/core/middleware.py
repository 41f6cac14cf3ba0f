from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from packages.common_settings.settings import Settings


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    # Trusted hosts
    allowed = settings.fast_api.allowed_hosts
    if settings.debug and allowed:
        # In debug allow '*' to avoid host-header issues in tunnels/proxies.
        allowed = allowed + ["*"]
    if allowed:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed)

    # CORS: the login widget posts from the frontend's origin
    origins = settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
