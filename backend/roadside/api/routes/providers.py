"""
Service provider API routes
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from roadside.api.deps import get_db
from roadside.services.directory import PolicyDirectory, provider_tag_for

router = APIRouter()


@router.get("")
async def list_providers(
    service_type: str = Query(..., description="tow_truck, repair_truck, taxi, rental_car or a provider tag"),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Providers for a service type, best rated first."""
    if provider_tag_for(service_type) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown service type: {service_type}",
        )
    directory = PolicyDirectory(db)
    return [p.to_dict() for p in directory.list_providers_by_service_type(service_type)]
