"""
Dispatched service database model (read by the dispatch system)
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey

from roadside.db.base import Base


class ServiceType(str, PyEnum):
    TOW_TRUCK = "tow_truck"
    REPAIR_TRUCK = "repair_truck"
    TAXI = "taxi"
    RENTAL_CAR = "rental_car"


# Service type -> provider service tag
PROVIDER_TAGS = {
    ServiceType.TOW_TRUCK: "tow",
    ServiceType.REPAIR_TRUCK: "repair",
    ServiceType.TAXI: "taxi",
    ServiceType.RENTAL_CAR: "rental_car",
}

SERVICE_LABELS = {
    ServiceType.TOW_TRUCK: "Tow Truck",
    ServiceType.REPAIR_TRUCK: "Mobile Repair",
    ServiceType.TAXI: "Transportation (Taxi)",
    ServiceType.RENTAL_CAR: "Rental Car",
}


class ServiceDispatch(Base):
    """A service arranged for a claim."""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    claim_id = Column(String(36), ForeignKey("claims.id"), nullable=False, index=True)
    service_type = Column(
        Enum(ServiceType, values_callable=lambda obj: [e.value for e in obj], native_enum=False, length=32),
        nullable=False,
    )
    provider_name = Column(String(255), nullable=False)
    provider_phone = Column(String(40))
    estimated_arrival = Column(Integer)  # minutes
    status = Column(String(32), default="dispatched")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ServiceDispatch {self.service_type.value} by {self.provider_name}>"
