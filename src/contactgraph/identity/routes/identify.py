from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends

from shared.logging import get_logger

from ..models import ContactSummary, IdentifyRequest, IdentifyResponse
from ..services.engine import IdentityResolutionEngine
from .deps import get_engine

router = APIRouter(tags=["identify"])
logger = get_logger("identity.routes.identify")


@router.post("/identify", response_model=IdentifyResponse)
def identify(
    payload: IdentifyRequest,
    engine: IdentityResolutionEngine = Depends(get_engine),
) -> IdentifyResponse:
    request_id = uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(request_id=request_id):
        logger.info(
            "identify_received",
            has_email=payload.email is not None,
            has_phone=payload.phoneNumber is not None,
        )
        result = engine.identify(payload.email, payload.phoneNumber)
        logger.info(
            "identify_resolved",
            outcome=result.outcome,
            primary_id=result.contact.primary_contact_id,
            created_id=result.created_id,
            merged_ids=result.merged_ids,
            attempts=result.attempts,
        )
    return IdentifyResponse(contact=ContactSummary.from_consolidated(result.contact))


__all__ = ["router"]
