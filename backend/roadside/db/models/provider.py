"""
Service provider (garage) database model
"""
import uuid

from sqlalchemy import Column, String, Integer, Float, JSON

from roadside.db.base import Base


class Provider(Base):
    """Garage or service business able to fulfil one or more service types."""

    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    phone = Column(String(40), nullable=False)
    address = Column(String(500), nullable=False, default="")
    # Tags drawn from {tow, repair, taxi, rental_car}
    services = Column(JSON, default=list)
    average_response_time = Column(Integer)  # minutes
    rating = Column(Float)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<Provider {self.name} ({self.rating})>"

    def offers(self, tag: str) -> bool:
        return tag in (self.services or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "average_response_time_minutes": self.average_response_time,
            "rating": self.rating,
            "services_offered": list(self.services or []),
        }
