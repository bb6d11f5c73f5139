from __future__ import annotations

from functools import lru_cache

from ..config import get_settings
from ..repository.contacts import ContactStore
from ..repository.memory import InMemoryContactStore
from ..repository.postgres import PostgresContactStore
from ..services.engine import IdentityResolutionEngine


def build_store(backend: str | None = None) -> ContactStore:
    settings = get_settings()
    backend = (backend or settings.store_backend).lower()
    if backend == "memory":
        return InMemoryContactStore()
    if backend == "postgres":
        return PostgresContactStore(
            settings.database_url,
            connect_timeout=settings.connect_timeout,
            statement_timeout_ms=settings.statement_timeout_ms,
        )
    raise ValueError(f"Unknown IDENTITY_STORE backend: {backend}")


@lru_cache(maxsize=1)
def get_engine() -> IdentityResolutionEngine:
    settings = get_settings()
    return IdentityResolutionEngine(
        build_store(),
        max_retries=settings.max_retries,
        retry_backoff=settings.retry_backoff,
    )


__all__ = ["build_store", "get_engine"]
