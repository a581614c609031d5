"""
Claim database model
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, Enum, JSON

from roadside.db.base import Base


class ClaimStage(str, PyEnum):
    """Lifecycle stages, in their only permitted order."""
    DATA_GATHERING = "data_gathering"
    COVERAGE_CHECK = "coverage_check"
    ARRANGING_SERVICES = "arranging_services"
    COMPLETED = "completed"


STAGE_ORDER = (
    ClaimStage.DATA_GATHERING,
    ClaimStage.COVERAGE_CHECK,
    ClaimStage.ARRANGING_SERVICES,
    ClaimStage.COMPLETED,
)


# Fields the driver (or a policy lookup) can fill in during data gathering
COLLECTED_FIELDS = (
    "driver_name",
    "driver_phone",
    "driver_email",
    "policy_number",
    "location",
    "incident_description",
    "vehicle_make",
    "vehicle_model",
    "vehicle_year",
)


class Claim(Base):
    """Roadside assistance claim, one per reported incident."""

    __tablename__ = "claims"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(
        Enum(
            ClaimStage,
            values_callable=lambda obj: [e.value for e in obj],
            native_enum=False,
            length=32,
        ),
        default=ClaimStage.DATA_GATHERING,
        nullable=False,
    )

    # Collected fields
    driver_name = Column(String(200))
    driver_phone = Column(String(40))
    driver_email = Column(String(255))
    policy_number = Column(String(50), index=True)
    location = Column(String(500))
    incident_description = Column(Text)
    vehicle_make = Column(String(100))
    vehicle_model = Column(String(100))
    vehicle_year = Column(Integer)

    # Coverage outcome: NULL until a decision is recorded
    is_covered = Column(Boolean, nullable=True)
    # {services_needed, services_covered, services_not_covered, explanation}
    coverage_details = Column(JSON, nullable=True)

    # Ordered list of arranged services (append-only)
    arranged_services = Column(JSON, default=list)
    nearest_garage = Column(String(255))

    # Transcript: list of {role, content, timestamp, author?}
    conversation_history = Column(JSON, default=list)

    # Stage transitions: list of {status, timestamp, actor, notes}
    timeline = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Claim {self.id} ({self.stage.value})>"

    @property
    def stage(self) -> ClaimStage:
        return ClaimStage(self.status or ClaimStage.DATA_GATHERING)

    def add_timeline_event(self, status: str, actor: str, notes: str = "") -> None:
        """Add an event to the claim timeline."""
        self.timeline = list(self.timeline or []) + [{
            "status": status,
            "timestamp": datetime.utcnow().isoformat(),
            "actor": actor,
            "notes": notes,
        }]

    def vehicle_display(self) -> str:
        parts = [str(p) for p in (self.vehicle_year, self.vehicle_make, self.vehicle_model) if p]
        return " ".join(parts)
