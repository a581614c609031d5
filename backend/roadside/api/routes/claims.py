"""
Claims API routes
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from roadside.api.deps import get_db, get_chat_model
from roadside.core.exceptions import ClaimNotFoundError, TurnProcessingError
from roadside.core.logging import get_logger
from roadside.db.models import ClaimStage
from roadside.services.analytics import compute_claim_stats
from roadside.services.chat import get_conversation_service
from roadside.services.claim_store import ClaimStore
from roadside.services.websocket_manager import publish_claim_state

logger = get_logger(__name__)

router = APIRouter()

CLAIM_NOT_FOUND_MESSAGE = "We couldn't find that claim. Please start a new one."


# Request/Response schemas
class TranscriptEntry(BaseModel):
    role: str
    content: str
    timestamp: Optional[str] = None
    author: Optional[str] = None


class ClaimMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_history: Optional[List[TranscriptEntry]] = None


class TurnResponse(BaseModel):
    message: str
    status: str
    claim: Dict[str, Any]
    notifications_created: int = 0


class ServiceResponse(BaseModel):
    id: str
    service_type: str
    provider_name: str
    provider_phone: Optional[str]
    estimated_arrival: Optional[int]
    status: str
    created_at: str


def _load_or_404(store: ClaimStore, claim_id: str):
    try:
        return store.load(claim_id)
    except ClaimNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CLAIM_NOT_FOUND_MESSAGE)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_claim(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Open a new claim seeded with the greeting."""
    service = get_conversation_service(db)
    try:
        snapshot = service.open_claim()
    except TurnProcessingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.user_message)

    logger.info(f"Claim opened: {snapshot['id']}")
    await publish_claim_state(snapshot, created=True)
    return snapshot


@router.get("")
async def list_claims(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """List claims, newest first."""
    if status_filter and status_filter not in {s.value for s in ClaimStage}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown status: {status_filter}",
        )
    store = ClaimStore(db)
    return [store.snapshot(c) for c in store.list_claims(status=status_filter, limit=limit)]


@router.get("/stats")
async def get_claim_stats(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Dashboard summary across all claims."""
    return compute_claim_stats(db)


@router.get("/{claim_id}")
async def get_claim(claim_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Get a claim snapshot."""
    store = ClaimStore(db)
    return store.snapshot(_load_or_404(store, claim_id))


@router.post("/{claim_id}/messages", response_model=TurnResponse)
async def send_message(
    claim_id: str,
    request: ClaimMessageRequest,
    db: Session = Depends(get_db),
    llm: BaseChatModel = Depends(get_chat_model),
):
    """Send a driver message and get the assistant's reply."""
    service = get_conversation_service(db, llm)
    history = (
        [entry.model_dump(exclude_none=True) for entry in request.conversation_history]
        if request.conversation_history is not None
        else None
    )

    try:
        result = await run_in_threadpool(
            service.process_turn,
            claim_id,
            request.message,
            history,
        )
    except ClaimNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=CLAIM_NOT_FOUND_MESSAGE)
    except TurnProcessingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.user_message)

    await publish_claim_state(result.claim, result.notifications)

    return TurnResponse(
        message=result.message,
        status=result.status,
        claim=result.claim,
        notifications_created=len(result.notifications),
    )


@router.get("/{claim_id}/services", response_model=List[ServiceResponse])
async def get_claim_services(claim_id: str, db: Session = Depends(get_db)):
    """Services dispatched for a claim."""
    store = ClaimStore(db)
    claim = _load_or_404(store, claim_id)
    return [
        ServiceResponse(
            id=s.id,
            service_type=s.service_type.value,
            provider_name=s.provider_name,
            provider_phone=s.provider_phone,
            estimated_arrival=s.estimated_arrival,
            status=s.status,
            created_at=s.created_at.isoformat(),
        )
        for s in store.list_services(claim.id)
    ]


@router.get("/{claim_id}/notifications")
async def get_claim_notifications(claim_id: str, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    """Notifications queued for a claim."""
    store = ClaimStore(db)
    claim = _load_or_404(store, claim_id)
    return [n.to_dict() for n in store.list_notifications(claim.id)]
