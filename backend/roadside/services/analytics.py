"""
Claims analytics for the operations dashboard.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from roadside.db.models import Claim, ClaimStage, STAGE_ORDER


RECENT_CLAIMS_LIMIT = 5


def _completed_at(claim: Claim) -> Optional[datetime]:
    """Timestamp of the timeline event that completed the claim."""
    for event in reversed(claim.timeline or []):
        if event.get("status") == ClaimStage.COMPLETED.value and event.get("timestamp"):
            return datetime.fromisoformat(event["timestamp"])
    return None


def compute_claim_stats(db: Session) -> Dict[str, Any]:
    """
    Summary figures across all claims.

    Average resolution time covers completed claims only, measured from
    creation to the completion event on the timeline.
    """
    claims = db.query(Claim).order_by(Claim.created_at.desc()).all()
    total = len(claims)

    status_breakdown = {stage.value: 0 for stage in STAGE_ORDER}
    for claim in claims:
        status_breakdown[claim.stage.value] += 1

    covered = sum(1 for c in claims if c.is_covered is True)
    not_covered = sum(1 for c in claims if c.is_covered is False)

    durations = []
    for c in claims:
        completed_at = _completed_at(c) if c.stage == ClaimStage.COMPLETED else None
        if completed_at and c.created_at:
            durations.append((completed_at - c.created_at).total_seconds() / 60)
    avg_resolution = round(sum(durations) / len(durations)) if durations else 0

    return {
        "total_claims": total,
        "active_claims": total - status_breakdown[ClaimStage.COMPLETED.value],
        "completed_claims": status_breakdown[ClaimStage.COMPLETED.value],
        "covered_claims": covered,
        "not_covered_claims": not_covered,
        "coverage_rate": round(covered / total * 100) if total else 0,
        "average_resolution_minutes": avg_resolution,
        "status_breakdown": status_breakdown,
        "recent_claims": [
            {
                "id": c.id,
                "driver": c.driver_name,
                "status": c.stage.value,
                "covered": c.is_covered,
                "location": c.location,
                "created_at": c.created_at.isoformat() if c.created_at else None,
            }
            for c in claims[:RECENT_CLAIMS_LIMIT]
        ],
    }
