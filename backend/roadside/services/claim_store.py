"""
Claim Record Store
Durable, mutable record for each claim. Flushes but never commits; the
caller owning the turn decides when the transaction ends.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from roadside.core.config import settings
from roadside.core.exceptions import ClaimNotFoundError
from roadside.core.logging import get_logger, log_audit_event
from roadside.db.models import (
    Claim,
    ClaimStage,
    STAGE_ORDER,
    COLLECTED_FIELDS,
    ServiceDispatch,
    ServiceType,
    Notification,
    NotificationType,
    NotificationStatus,
    Provider,
)
from roadside.services.db_utils import with_db_retry

logger = get_logger(__name__)

# Keys a merge-patch may touch
PATCHABLE_FIELDS = frozenset(COLLECTED_FIELDS) | {
    "status",
    "is_covered",
    "coverage_details",
    "arranged_services",
    "nearest_garage",
}

TRANSCRIPT_ROLES = ("user", "assistant")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ClaimStore:
    """Create, load and patch claim records."""

    def __init__(self, db: Session):
        self.db = db

    @with_db_retry()
    def create(self, greeting: Optional[str] = None) -> Claim:
        """Create a claim in data_gathering with the greeting as first transcript entry."""
        claim = Claim(
            status=ClaimStage.DATA_GATHERING,
            arranged_services=[],
            conversation_history=[],
            timeline=[],
        )
        self.db.add(claim)
        claim.conversation_history = [{
            "role": "assistant",
            "content": greeting if greeting is not None else settings.GREETING_MESSAGE,
            "timestamp": datetime.utcnow().isoformat(),
        }]
        claim.add_timeline_event(ClaimStage.DATA_GATHERING.value, "system", "Claim opened")
        self.db.flush()
        logger.info(f"Created claim {claim.id}")
        return claim

    @with_db_retry(max_retries=0, rollback_on_error=False)
    def load(self, claim_id: str, for_update: bool = False) -> Claim:
        """Load a claim, optionally taking a row lock for the rest of the transaction."""
        query = self.db.query(Claim).filter(Claim.id == str(claim_id))
        if for_update:
            query = query.with_for_update()
        claim = query.first()
        if claim is None:
            raise ClaimNotFoundError(str(claim_id))
        return claim

    @with_db_retry(max_retries=0, rollback_on_error=False)
    def update(self, claim_id: str, patch: Dict[str, Any], actor: str = "assistant") -> Claim:
        """
        Merge-patch a claim: only keys present in ``patch`` change.

        Raises:
            ValueError: unknown key, stage regression, or an arranged-services
                list that does not extend the stored one.
        """
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown claim fields: {', '.join(sorted(unknown))}")

        claim = self.load(claim_id)
        changes = dict(patch)

        new_stage = None
        if "status" in changes:
            new_stage = ClaimStage(changes.pop("status"))
            if STAGE_ORDER.index(new_stage) < STAGE_ORDER.index(claim.stage):
                raise ValueError(
                    f"Claim {claim.id} cannot move back from {claim.stage.value} to {new_stage.value}"
                )

        if "arranged_services" in changes:
            existing = [s.get("service_id") for s in (claim.arranged_services or [])]
            proposed = list(changes["arranged_services"] or [])
            if [s.get("service_id") for s in proposed[:len(existing)]] != existing:
                raise ValueError("Arranged services can only be appended")
            changes["arranged_services"] = proposed

        for field_name, value in changes.items():
            if field_name == "coverage_details" and value is not None:
                value = dict(value)
            setattr(claim, field_name, value)

        if new_stage is not None and new_stage != claim.stage:
            previous = claim.stage
            claim.status = new_stage
            claim.add_timeline_event(new_stage.value, actor, f"Moved from {previous.value}")
            log_audit_event(
                "claim_stage_changed",
                actor_id=claim.id,
                actor_type=actor,
                details={"from": previous.value, "to": new_stage.value},
            )

        claim.updated_at = datetime.utcnow()
        self.db.flush()
        return claim

    @with_db_retry(max_retries=0, rollback_on_error=False)
    def append_transcript(self, claim_id: str, entries: Iterable[Dict[str, Any]]) -> Claim:
        """Append transcript entries with strictly increasing timestamps."""
        claim = self.load(claim_id)
        history = list(claim.conversation_history or [])

        last = None
        if history and history[-1].get("timestamp"):
            last = datetime.fromisoformat(history[-1]["timestamp"])

        for entry in entries:
            role = entry.get("role")
            if role not in TRANSCRIPT_ROLES:
                raise ValueError(f"Invalid transcript role: {role}")
            stamp = datetime.utcnow()
            if last is not None and stamp <= last:
                stamp = last + timedelta(microseconds=1)
            record = {
                "role": role,
                "content": entry.get("content") or "",
                "timestamp": stamp.isoformat(),
            }
            if entry.get("author"):
                record["author"] = entry["author"]
            history.append(record)
            last = stamp

        claim.conversation_history = history
        claim.updated_at = datetime.utcnow()
        self.db.flush()
        return claim

    @with_db_retry(max_retries=0, rollback_on_error=False)
    def record_service(
        self,
        claim_id: str,
        service_type: ServiceType,
        provider: Provider,
        estimated_arrival: Optional[int] = None,
    ) -> ServiceDispatch:
        """Insert a dispatched service row for the claim."""
        dispatch = ServiceDispatch(
            claim_id=str(claim_id),
            service_type=ServiceType(service_type),
            provider_name=provider.name,
            provider_phone=provider.phone,
            estimated_arrival=estimated_arrival if estimated_arrival is not None else provider.average_response_time,
            status="dispatched",
        )
        self.db.add(dispatch)
        self.db.flush()
        return dispatch

    @with_db_retry(max_retries=0, rollback_on_error=False)
    def queue_notifications(
        self,
        claim_id: str,
        channels: List[tuple],
        message: str,
    ) -> List[Notification]:
        """Queue one pending notification per (type, recipient) channel."""
        created = []
        for channel_type, recipient in channels:
            notification = Notification(
                claim_id=str(claim_id),
                type=NotificationType(channel_type),
                recipient=recipient,
                message=message,
                status=NotificationStatus.PENDING,
            )
            self.db.add(notification)
            created.append(notification)
        self.db.flush()
        return created

    def list_services(self, claim_id: str) -> List[ServiceDispatch]:
        return (
            self.db.query(ServiceDispatch)
            .filter(ServiceDispatch.claim_id == str(claim_id))
            .order_by(ServiceDispatch.created_at)
            .all()
        )

    def list_notifications(self, claim_id: str) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.claim_id == str(claim_id))
            .order_by(Notification.created_at)
            .all()
        )

    @with_db_retry()
    def list_claims(self, status: Optional[str] = None, limit: int = 100) -> List[Claim]:
        """Claims, newest first."""
        query = self.db.query(Claim)
        if status:
            query = query.filter(Claim.status == ClaimStage(status))
        return query.order_by(Claim.created_at.desc()).limit(limit).all()

    @staticmethod
    def snapshot(claim: Claim) -> Dict[str, Any]:
        """JSON-ready view of every stored field."""
        data = {field_name: getattr(claim, field_name) for field_name in COLLECTED_FIELDS}
        data.update({
            "id": claim.id,
            "status": claim.stage.value,
            "is_covered": claim.is_covered,
            "coverage_details": claim.coverage_details,
            "arranged_services": list(claim.arranged_services or []),
            "nearest_garage": claim.nearest_garage,
            "conversation_history": list(claim.conversation_history or []),
            "timeline": list(claim.timeline or []),
            "created_at": _iso(claim.created_at),
            "updated_at": _iso(claim.updated_at),
        })
        return data


def get_claim_store(db: Session) -> ClaimStore:
    """Factory function for ClaimStore."""
    return ClaimStore(db)
