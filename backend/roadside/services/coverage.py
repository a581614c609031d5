"""
Deterministic Coverage Evaluator
Coverage decisions are computed here from the policy flags, NOT by the LLM.
"""
from dataclasses import dataclass, asdict
from typing import Iterable, List, Mapping, Optional

from roadside.db.models import ServiceType, SERVICE_LABELS


# Names the driver or model may use -> canonical service type
SERVICE_ALIASES = {
    "tow": ServiceType.TOW_TRUCK,
    "towing": ServiceType.TOW_TRUCK,
    "tow_truck": ServiceType.TOW_TRUCK,
    "roadside_assistance": ServiceType.REPAIR_TRUCK,
    "repair": ServiceType.REPAIR_TRUCK,
    "repair_truck": ServiceType.REPAIR_TRUCK,
    "jump_start": ServiceType.REPAIR_TRUCK,
    "flat_tire": ServiceType.REPAIR_TRUCK,
    "lockout": ServiceType.REPAIR_TRUCK,
    "fuel_delivery": ServiceType.REPAIR_TRUCK,
    "taxi": ServiceType.TAXI,
    "transport": ServiceType.TAXI,
    "transportation": ServiceType.TAXI,
    "rental": ServiceType.RENTAL_CAR,
    "rental_car": ServiceType.RENTAL_CAR,
}

# Service type -> policy flag required on top of roadside_assistance
REQUIRED_FLAGS = {
    ServiceType.TOW_TRUCK: "towing_coverage",
    ServiceType.REPAIR_TRUCK: None,
    ServiceType.TAXI: "transport_coverage",
    ServiceType.RENTAL_CAR: "rental_car_coverage",
}


@dataclass
class CoverageDecision:
    """Result of a coverage evaluation."""
    is_covered: bool
    services_needed: List[str]
    services_covered: List[str]
    services_not_covered: List[str]
    explanation: str

    def to_details(self) -> dict:
        """Shape stored in Claim.coverage_details."""
        data = asdict(self)
        data.pop("is_covered")
        return data


def normalize_service(name: str) -> Optional[ServiceType]:
    """Canonical service type for a free-form service name, or None."""
    key = (name or "").strip().lower().replace("-", "_").replace(" ", "_")
    return SERVICE_ALIASES.get(key)


def _normalize_all(services: Iterable[str]) -> List[str]:
    """Canonical names in first-seen order; unknown names are kept as given."""
    result = []
    for name in services or []:
        canonical = normalize_service(name)
        value = canonical.value if canonical else (name or "").strip().lower()
        if value and value not in result:
            result.append(value)
    return result


def evaluate_coverage(flags: Mapping[str, object], services_needed: Iterable[str]) -> CoverageDecision:
    """
    Decide which needed services the policy covers.

    Rules:
    - roadside_assistance is the umbrella flag; without it nothing is covered.
    - repair_truck is covered by roadside_assistance alone.
    - tow_truck, taxi and rental_car additionally need their own flag.
    - Unknown services are never covered.
    - The claim is covered only when at least one service is needed and all
      of them are covered.

    Args:
        flags: Policy coverage flags (see Policy.coverage_flags)
        services_needed: Service names as the driver or model described them

    Returns:
        CoverageDecision
    """
    needed = _normalize_all(services_needed)
    has_roadside = bool(flags.get("roadside_assistance"))

    covered: List[str] = []
    not_covered: List[str] = []
    reasons: List[str] = []

    for value in needed:
        try:
            service_type = ServiceType(value)
        except ValueError:
            not_covered.append(value)
            reasons.append(f"'{value}' is not a service we can arrange")
            continue

        label = SERVICE_LABELS[service_type]
        if not has_roadside:
            not_covered.append(value)
            continue

        required = REQUIRED_FLAGS[service_type]
        if required is None or flags.get(required):
            covered.append(value)
        else:
            not_covered.append(value)
            reasons.append(f"{label} is not included in this policy")

    is_covered = bool(needed) and not not_covered

    if not needed:
        explanation = "No services were identified, so coverage could not be confirmed."
    elif not has_roadside:
        explanation = "This policy does not include roadside assistance."
    elif is_covered:
        labels = ", ".join(SERVICE_LABELS[ServiceType(v)] for v in covered)
        explanation = f"All requested services are covered: {labels}."
        max_distance = flags.get("max_towing_distance")
        if ServiceType.TOW_TRUCK.value in covered and max_distance:
            explanation += f" Towing is covered up to {max_distance} km."
    else:
        explanation = "; ".join(reasons) + "."

    return CoverageDecision(
        is_covered=is_covered,
        services_needed=needed,
        services_covered=covered,
        services_not_covered=not_covered,
        explanation=explanation,
    )
