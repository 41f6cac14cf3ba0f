from dataclasses import dataclass

from packages.common_settings.settings import Settings
from packages.db.database import Database
from packages.telegram_auth.normalizer import IdentityNormalizer
from packages.telegram_auth.verifier import TelegramLoginVerifier


@dataclass(slots=True)
class AppState:
    """
    Единый контейнер состояния приложения.

    settings/verifier/normalizer собираются один раз на старте и не меняются.
    db появляется в lifespan (или передаётся готовым в тестах).
    """

    settings: Settings
    verifier: TelegramLoginVerifier
    normalizer: IdentityNormalizer
    db: Database | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, db: Database | None = None) -> "AppState":
        return cls(
            settings=settings,
            verifier=TelegramLoginVerifier.from_settings(settings.telegram),
            normalizer=IdentityNormalizer.from_settings(settings.telegram),
            db=db,
        )


__all__ = ["AppState"]
