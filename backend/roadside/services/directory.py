"""
Policy and Provider Directory
Read-only lookups over policies, customers and service providers.
"""
from typing import Optional, List, Union
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from roadside.db.models import Policy, Customer, Provider, ServiceType, PROVIDER_TAGS
from roadside.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CustomerLookup:
    """Contact details resolved for a policy."""
    source: str  # "customer_record" or "policy"
    full_name: str
    phone: str
    email: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "full_name": self.full_name,
            "phone": self.phone,
            "email": self.email,
        }
        data.update(self.extra)
        return data


def provider_tag_for(service_type: Union[str, ServiceType]) -> Optional[str]:
    """Map a service type (or a raw provider tag) to the provider tag."""
    if isinstance(service_type, ServiceType):
        return PROVIDER_TAGS[service_type]
    value = (service_type or "").strip().lower()
    if value in PROVIDER_TAGS.values():
        return value
    try:
        return PROVIDER_TAGS[ServiceType(value)]
    except ValueError:
        return None


def _provider_rank(provider: Provider) -> tuple:
    rating = provider.rating if provider.rating is not None else 0.0
    response = provider.average_response_time
    return (-rating, response if response is not None else float("inf"), provider.name)


class PolicyDirectory:
    """Lookup service for policies, customers and providers."""

    def __init__(self, db: Session):
        self.db = db

    # ---- Policies ----

    def find_policy_by_number(self, policy_number: str) -> Optional[Policy]:
        number = (policy_number or "").strip()
        if not number:
            return None
        return self.db.query(Policy).filter(Policy.policy_number == number).first()

    def find_policies_by_phone(self, phone: str) -> List[Policy]:
        """Exact match on the holder's phone number."""
        phone = (phone or "").strip()
        if not phone:
            return []
        return (
            self.db.query(Policy)
            .filter(Policy.holder_phone == phone)
            .order_by(Policy.policy_number)
            .all()
        )

    def find_policies_by_name(self, name: str) -> List[Policy]:
        """Case-insensitive substring match on the holder's name."""
        name = (name or "").strip()
        if not name:
            return []
        return (
            self.db.query(Policy)
            .filter(Policy.holder_name.icontains(name, autoescape=True))
            .order_by(Policy.policy_number)
            .all()
        )

    def find_customer_by_policy(self, policy: Policy) -> CustomerLookup:
        """
        Resolve contact details for a policy.

        A customer record that lists the policy wins; otherwise the holder
        fields on the policy itself are used.
        """
        for customer in self.db.query(Customer).all():
            if policy.id in (customer.policy_ids or []):
                details = customer.to_dict()
                return CustomerLookup(
                    source="customer_record",
                    full_name=customer.full_name,
                    phone=customer.phone,
                    email=customer.email,
                    extra={k: v for k, v in details.items() if k not in ("full_name", "phone", "email")},
                )

        return CustomerLookup(
            source="policy",
            full_name=policy.holder_name,
            phone=policy.holder_phone,
            email=policy.holder_email,
        )

    # ---- Providers ----

    def list_providers_by_service_type(self, service_type: Union[str, ServiceType]) -> List[Provider]:
        """Providers offering the service, best rated first, then fastest response."""
        tag = provider_tag_for(service_type)
        if tag is None:
            logger.info(f"Unknown service type requested: {service_type}")
            return []
        providers = [p for p in self.db.query(Provider).all() if p.offers(tag)]
        return sorted(providers, key=_provider_rank)

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        if not provider_id:
            return None
        return self.db.query(Provider).filter(Provider.id == provider_id).first()

    def best_provider(self, service_type: Union[str, ServiceType]) -> Optional[Provider]:
        providers = self.list_providers_by_service_type(service_type)
        return providers[0] if providers else None


def get_policy_directory(db: Session) -> PolicyDirectory:
    """Factory function for PolicyDirectory."""
    return PolicyDirectory(db)
