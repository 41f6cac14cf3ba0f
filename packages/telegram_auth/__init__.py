from .claims import TelegramClaimSet, ensure_required_fields, render_claim_value
from .errors import (
    InvalidSignatureError,
    MalformedClaimSetError,
    PersistenceError,
    TelegramAuthError,
)
from .normalizer import IdentityNormalizer
from .verifier import TelegramLoginVerifier

__all__ = [
    "TelegramClaimSet",
    "ensure_required_fields",
    "render_claim_value",
    "TelegramAuthError",
    "MalformedClaimSetError",
    "InvalidSignatureError",
    "PersistenceError",
    "IdentityNormalizer",
    "TelegramLoginVerifier",
]
