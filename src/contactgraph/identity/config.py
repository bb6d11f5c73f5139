from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field

from shared.db import get_conn_str


class IdentitySettings(BaseModel):
    """Runtime configuration for the Identity Service."""

    database_url: str = Field(default_factory=get_conn_str)
    service_name: str = Field(default_factory=lambda: os.getenv("SERVICE_NAME", "identity-service"))
    store_backend: str = Field(default_factory=lambda: os.getenv("IDENTITY_STORE", "postgres").lower())
    max_retries: int = Field(default_factory=lambda: int(os.getenv("IDENTITY_MAX_RETRIES", "3")))
    retry_backoff: float = Field(default_factory=lambda: float(os.getenv("IDENTITY_RETRY_BACKOFF", "0.05")))
    connect_timeout: int = Field(default_factory=lambda: int(os.getenv("DB_CONNECT_TIMEOUT", "5")))
    statement_timeout_ms: int = Field(default_factory=lambda: int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


@lru_cache(maxsize=1)
def get_settings() -> IdentitySettings:
    return IdentitySettings()


__all__ = ["IdentitySettings", "get_settings"]
