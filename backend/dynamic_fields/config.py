"""Environment-driven settings for the dynamic field registry."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

# purpose: single place reading registry configuration from the environment
# status: active

DEFAULT_CACHE_TTL = 3600


def _split_modules(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class RegistrySettings:
    """Runtime configuration shared by the registry and its collaborators.

    The ``memory`` cache lives inside one process and only sees the writes made
    by that process. Deployments running several web or worker processes against the
    same store must use ``cache_backend="redis"``, otherwise other processes
    keep serving stale definitions until their entries expire (``cache_ttl``).
    """

    database_url: str = "sqlite:///./dynamic_fields.db"
    cache_ttl: int = DEFAULT_CACHE_TTL
    cache_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    backend_modules: tuple[str, ...] = field(default_factory=tuple)
    system_user_id: int = 1
    testing: bool = False

    @classmethod
    def from_env(cls) -> "RegistrySettings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./dynamic_fields.db"),
            cache_ttl=int(os.getenv("DYNAMIC_FIELD_CACHE_TTL") or DEFAULT_CACHE_TTL),
            cache_backend=os.getenv("DYNAMIC_FIELD_CACHE_BACKEND", "memory").lower(),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            backend_modules=_split_modules(os.getenv("DYNAMIC_FIELD_BACKEND_MODULES")),
            system_user_id=int(os.getenv("DYNAMIC_FIELD_SYSTEM_USER_ID") or 1),
            testing=os.getenv("TESTING") == "1",
        )


_SETTINGS: RegistrySettings | None = None


def get_settings() -> RegistrySettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = RegistrySettings.from_env()
    return _SETTINGS


def reset_settings() -> None:
    """Drop the memoised settings so the next call re-reads the environment."""

    global _SETTINGS
    _SETTINGS = None
