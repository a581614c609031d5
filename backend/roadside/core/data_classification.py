"""
Data classification and PII handling for claim data.
Defines sensitivity levels and provides utilities for masking tool payloads in logs.
"""

from enum import Enum
from typing import Any
import re


class DataClassification(Enum):
    """Data sensitivity classification levels."""
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"  # PII


# Field classifications for claim, policy and customer data
FIELD_CLASSIFICATIONS: dict[str, DataClassification] = {
    # Driver / customer contact
    "driver_email": DataClassification.CONFIDENTIAL,
    "driver_phone": DataClassification.CONFIDENTIAL,
    "email": DataClassification.CONFIDENTIAL,
    "phone": DataClassification.CONFIDENTIAL,
    "phone_number": DataClassification.CONFIDENTIAL,
    "holder_phone": DataClassification.CONFIDENTIAL,
    "holder_email": DataClassification.CONFIDENTIAL,
    "recipient": DataClassification.CONFIDENTIAL,
    "address": DataClassification.CONFIDENTIAL,
    "date_of_birth": DataClassification.RESTRICTED,
    "licence_number": DataClassification.RESTRICTED,

    # Claim and policy fields
    "policy_number": DataClassification.INTERNAL,
    "location": DataClassification.INTERNAL,
    "incident_description": DataClassification.INTERNAL,
}


# Regex patterns for detecting sensitive data in free text
SENSITIVE_PATTERNS = {
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "phone": re.compile(r"\+?\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),
}


def get_field_classification(field_name: str) -> DataClassification:
    """Get the classification level for a field."""
    return FIELD_CLASSIFICATIONS.get(
        field_name.lower(),
        DataClassification.INTERNAL
    )


def mask_value(value: str, classification: DataClassification) -> str:
    """Mask a value based on its classification."""
    if classification in (DataClassification.PUBLIC, DataClassification.INTERNAL):
        return value
    elif classification == DataClassification.CONFIDENTIAL:
        # Show first and last characters
        if len(value) <= 4:
            return "*" * len(value)
        return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
    else:  # RESTRICTED
        return "*" * min(len(value), 8)


def detect_and_mask_pii(text: str) -> str:
    """Detect and mask contact details in free-form text."""
    def mask_email(match: re.Match) -> str:
        local, domain = match.group().rsplit("@", 1)
        return f"{local[0]}***@{domain}"

    def mask_phone(match: re.Match) -> str:
        return f"***-***-{match.group()[-4:]}"

    masked = SENSITIVE_PATTERNS["email"].sub(mask_email, text)
    masked = SENSITIVE_PATTERNS["phone"].sub(mask_phone, masked)
    return masked


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize a dictionary for safe logging."""
    sanitized = {}

    for key, value in data.items():
        classification = get_field_classification(key)

        if value is None:
            sanitized[key] = None
        elif isinstance(value, str):
            if classification in [DataClassification.CONFIDENTIAL, DataClassification.RESTRICTED]:
                sanitized[key] = mask_value(value, classification)
            else:
                sanitized[key] = value
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized
