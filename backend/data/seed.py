"""
Seed script for populating the database with sample policies, customers and providers.
Run with: python data/seed.py
"""
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.orm import Session

from roadside.db import Base, SessionLocal, engine
from roadside.db.models import Policy, Customer, Provider
from roadside.core.logging import logger


SAMPLE_POLICIES = [
    {
        "policy_number": "POL-1001",
        "coverage_type": "premium",
        "holder_name": "Maria Lopez",
        "holder_phone": "+15550101",
        "holder_email": "maria.lopez@example.com",
        "roadside_assistance": True,
        "towing_coverage": True,
        "max_towing_distance": 100,
        "transport_coverage": True,
        "rental_car_coverage": True,
        "vehicle_make": "Toyota",
        "vehicle_model": "Corolla",
        "vehicle_year": 2019,
    },
    {
        "policy_number": "POL-1002",
        "coverage_type": "standard",
        "holder_name": "James Carter",
        "holder_phone": "+15550102",
        "holder_email": "james.carter@example.com",
        "roadside_assistance": True,
        "towing_coverage": True,
        "max_towing_distance": 50,
        "transport_coverage": False,
        "rental_car_coverage": False,
        "vehicle_make": "Ford",
        "vehicle_model": "Focus",
        "vehicle_year": 2017,
    },
    {
        "policy_number": "POL-1003",
        "coverage_type": "basic",
        "holder_name": "Anna Carter",
        "holder_phone": "+15550103",
        "holder_email": None,
        "roadside_assistance": False,
        "towing_coverage": False,
        "max_towing_distance": 0,
        "transport_coverage": False,
        "rental_car_coverage": False,
        "vehicle_make": "Honda",
        "vehicle_model": "Civic",
        "vehicle_year": 2015,
    },
    {
        "policy_number": "POL-1004",
        "coverage_type": "standard",
        "holder_name": "Samir Haddad",
        "holder_phone": "+15550104",
        "holder_email": "samir.haddad@example.com",
        "roadside_assistance": True,
        "towing_coverage": False,
        "max_towing_distance": 0,
        "transport_coverage": False,
        "rental_car_coverage": False,
        "vehicle_make": "Volkswagen",
        "vehicle_model": "Golf",
        "vehicle_year": 2021,
    },
]

# Customer records keyed to the policy numbers they hold
SAMPLE_CUSTOMERS = [
    {
        "full_name": "Maria Lopez",
        "phone": "+15550101",
        "email": "maria.lopez@example.com",
        "address": {"street": "12 Harbour Road", "city": "Springfield", "postal_code": "11001"},
        "date_of_birth": date(1986, 4, 12),
        "licence_number": "D1234567",
        "licence_issuer": "Springfield DMV",
        "customer_since": date(2016, 9, 1),
        "policies": ["POL-1001"],
    },
]

SAMPLE_PROVIDERS = [
    {
        "name": "QuickTow Services",
        "phone": "+15552001",
        "address": "400 Industrial Way, Springfield",
        "services": ["tow"],
        "average_response_time": 25,
        "rating": 4.8,
    },
    {
        "name": "Highway Recovery",
        "phone": "+15552002",
        "address": "18 Route 9, Springfield",
        "services": ["tow", "repair"],
        "average_response_time": 35,
        "rating": 4.5,
    },
    {
        "name": "Mobile Mechanics Co",
        "phone": "+15552003",
        "address": "77 Garage Lane, Springfield",
        "services": ["repair"],
        "average_response_time": 20,
        "rating": 4.7,
    },
    {
        "name": "City Cabs",
        "phone": "+15552004",
        "address": "1 Station Square, Springfield",
        "services": ["taxi"],
        "average_response_time": 10,
        "rating": 4.2,
    },
    {
        "name": "DriveAway Rentals",
        "phone": "+15552005",
        "address": "250 Airport Blvd, Springfield",
        "services": ["rental_car"],
        "average_response_time": 60,
        "rating": 4.4,
    },
]


def seed_policies(db: Session) -> dict:
    """Insert sample policies that are not already present. Returns policy_number -> Policy."""
    policies = {}
    for data in SAMPLE_POLICIES:
        existing = db.query(Policy).filter(Policy.policy_number == data["policy_number"]).first()
        if existing:
            logger.info(f"  Skipping {data['policy_number']} (already exists)")
            policies[existing.policy_number] = existing
            continue
        policy = Policy(**data)
        db.add(policy)
        policies[policy.policy_number] = policy
        logger.info(f"  Created policy {data['policy_number']}")
    db.flush()
    return policies


def seed_customers(db: Session, policies: dict) -> None:
    for data in SAMPLE_CUSTOMERS:
        data = dict(data)
        policy_numbers = data.pop("policies")
        if db.query(Customer).filter(Customer.email == data["email"]).first():
            logger.info(f"  Skipping customer {data['full_name']} (already exists)")
            continue
        db.add(Customer(policy_ids=[policies[n].id for n in policy_numbers], **data))
        logger.info(f"  Created customer {data['full_name']}")


def seed_providers(db: Session) -> None:
    for data in SAMPLE_PROVIDERS:
        if db.query(Provider).filter(Provider.name == data["name"]).first():
            logger.info(f"  Skipping provider {data['name']} (already exists)")
            continue
        db.add(Provider(**data))
        logger.info(f"  Created provider {data['name']}")


def seed():
    """Seed the database with reference data."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        policies = seed_policies(db)
        seed_customers(db, policies)
        seed_providers(db)
        db.commit()
        logger.info("Seeding complete")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
