"""
Policies API routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from roadside.api.deps import get_db
from roadside.db.models import Policy
from roadside.services.directory import PolicyDirectory

router = APIRouter()


# Response schemas
class PolicyResponse(BaseModel):
    policy_number: str
    holder_name: str
    coverage_type: str
    vehicle: str
    roadside_assistance: bool
    towing_coverage: bool
    max_towing_distance: int
    transport_coverage: bool
    rental_car_coverage: bool


class PolicyLookupResponse(BaseModel):
    found: bool
    single_match: bool = False
    policies: List[PolicyResponse] = []


def _to_response(policy: Policy) -> PolicyResponse:
    return PolicyResponse(
        policy_number=policy.policy_number,
        holder_name=policy.holder_name,
        coverage_type=policy.coverage_type,
        vehicle=policy.vehicle_display(),
        **policy.coverage_flags(),
    )


@router.get("/lookup", response_model=PolicyLookupResponse)
async def lookup_policy(
    policy_number: Optional[str] = Query(default=None),
    phone: Optional[str] = Query(default=None),
    name: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Find policies by number, holder phone or holder name (exactly one)."""
    given = [v for v in (policy_number, phone, name) if v]
    if len(given) != 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide exactly one of policy_number, phone or name",
        )

    directory = PolicyDirectory(db)
    if policy_number:
        policy = directory.find_policy_by_number(policy_number)
        policies = [policy] if policy else []
    elif phone:
        policies = directory.find_policies_by_phone(phone)
    else:
        policies = directory.find_policies_by_name(name)

    return PolicyLookupResponse(
        found=bool(policies),
        single_match=len(policies) == 1,
        policies=[_to_response(p) for p in policies],
    )
