from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..models import ContactSummary, IdentifyResponse
from ..services.engine import IdentityResolutionEngine
from .deps import get_engine

router = APIRouter(prefix="/v1/contacts", tags=["contacts"])


@router.get("/{primary_id}", response_model=IdentifyResponse)
def get_identity(
    primary_id: int,
    engine: IdentityResolutionEngine = Depends(get_engine),
) -> IdentifyResponse:
    contact = engine.lookup(primary_id)
    if contact is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Contact {primary_id} is not a live primary contact",
        )
    return IdentifyResponse(contact=ContactSummary.from_consolidated(contact))


__all__ = ["router"]
