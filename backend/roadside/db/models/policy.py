"""
Insurance policy and customer database models (read-only reference data)
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Date, DateTime, Integer, Boolean, JSON

from roadside.db.base import Base


class Policy(Base):
    """Roadside insurance policy with its coverage flags."""

    __tablename__ = "insurance_policies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    policy_number = Column(String(50), unique=True, nullable=False, index=True)
    coverage_type = Column(String(50), nullable=False, default="standard")

    # Policyholder information (for identity matching)
    holder_name = Column(String(200), nullable=False, index=True)
    holder_phone = Column(String(40), nullable=False, index=True)
    holder_email = Column(String(255))

    # Coverage flags
    roadside_assistance = Column(Boolean, default=False)
    towing_coverage = Column(Boolean, default=False)
    max_towing_distance = Column(Integer, default=0)
    transport_coverage = Column(Boolean, default=False)
    rental_car_coverage = Column(Boolean, default=False)

    # Insured vehicle
    vehicle_make = Column(String(100))
    vehicle_model = Column(String(100))
    vehicle_year = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Policy {self.policy_number} ({self.coverage_type})>"

    def coverage_flags(self) -> dict:
        """Coverage flags as plain values, missing flags read as not covered."""
        return {
            "roadside_assistance": bool(self.roadside_assistance),
            "towing_coverage": bool(self.towing_coverage),
            "max_towing_distance": self.max_towing_distance or 0,
            "transport_coverage": bool(self.transport_coverage),
            "rental_car_coverage": bool(self.rental_car_coverage),
        }

    def vehicle_display(self) -> str:
        parts = [str(p) for p in (self.vehicle_year, self.vehicle_make, self.vehicle_model) if p]
        return " ".join(parts)

    def to_summary(self) -> dict:
        """Short form shown to the model when disambiguating matches."""
        return {
            "policy_number": self.policy_number,
            "holder_name": self.holder_name,
            "vehicle": self.vehicle_display(),
            "coverage_type": self.coverage_type,
        }


class Customer(Base):
    """Customer record linked to one or more policies."""

    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String(200), nullable=False)
    phone = Column(String(40), nullable=False)
    email = Column(String(255), nullable=False)
    address = Column(JSON, default=dict)
    date_of_birth = Column(Date)
    licence_number = Column(String(50))
    licence_issuer = Column(String(100))
    customer_since = Column(Date)
    # Ids of the policies this customer holds
    policy_ids = Column(JSON, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<Customer {self.full_name}>"

    def to_dict(self) -> dict:
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "licence_number": self.licence_number,
            "licence_issuer": self.licence_issuer,
            "customer_since": self.customer_since.isoformat() if self.customer_since else None,
        }
