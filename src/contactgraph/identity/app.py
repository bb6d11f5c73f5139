from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger, setup_logging

from .config import get_settings
from .errors import (
    IdentityError,
    InconsistentState,
    StoreUnavailable,
    TransactionFailure,
    ValidationError,
)
from .models import ErrorEnvelope, HealthStatus
from .routes import contacts, identify
from .routes.deps import get_engine
from .services.engine import IdentityResolutionEngine

logger = get_logger("identity.app")

_STATUS_BY_ERROR: Dict[type[IdentityError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InconsistentState: status.HTTP_500_INTERNAL_SERVER_ERROR,
    TransactionFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _make_correlation_id(prefix: str) -> str:
    now = datetime.now(tz=UTC).isoformat()
    return f"{prefix}_{now}_{uuid.uuid4().hex[:8]}"


def _error_response(
    status_code: int,
    error_code: str,
    message: str,
    correlation_id: str,
    *,
    retryable: bool = False,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    envelope = ErrorEnvelope(
        error_code=error_code,
        message=message,
        retryable=retryable,
        correlation_id=correlation_id,
        details=details or {},
    )
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(),
        headers={"X-Correlation-ID": correlation_id},
    )


def _status_for(exc: IdentityError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Contact Identity Service", version="0.1.0")

    @app.on_event("startup")
    def on_startup() -> None:
        setup_logging(settings.log_level, service=settings.service_name)
        logger.info("identity_service_ready", store_backend=settings.store_backend)

    @app.exception_handler(IdentityError)
    async def handle_identity_error(request: Request, exc: IdentityError) -> JSONResponse:
        correlation_id = _make_correlation_id("identify")
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error(
                "identify_failed",
                error_code=exc.error_code,
                error=str(exc),
                correlation_id=correlation_id,
            )
            message = "Internal server error during identity processing."
        else:
            message = str(exc)
        return _error_response(
            status_code,
            exc.error_code,
            message,
            correlation_id,
            retryable=exc.retryable,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            ValidationError.error_code,
            "email and phoneNumber must be strings when present.",
            _make_correlation_id("identify"),
            details={"errors": [str(error.get("msg")) for error in exc.errors()]},
        )

    @app.get("/v1/healthz", tags=["system"], response_model=HealthStatus)
    def healthz(engine: IdentityResolutionEngine = Depends(get_engine)) -> HealthStatus:
        store_ok = engine.ping()
        return HealthStatus(
            status="ok" if store_ok else "degraded",
            service=settings.service_name,
            store="ok" if store_ok else "unavailable",
        )

    app.include_router(identify.router)
    app.include_router(contacts.router)

    return app


__all__ = ["create_app"]
