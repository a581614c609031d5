"""
Database models package
"""
from roadside.db.models.claim import Claim, ClaimStage, STAGE_ORDER, COLLECTED_FIELDS
from roadside.db.models.policy import Policy, Customer
from roadside.db.models.provider import Provider
from roadside.db.models.service import ServiceDispatch, ServiceType, PROVIDER_TAGS, SERVICE_LABELS
from roadside.db.models.notification import Notification, NotificationType, NotificationStatus

__all__ = [
    # Claim
    "Claim",
    "ClaimStage",
    "STAGE_ORDER",
    "COLLECTED_FIELDS",
    # Policy
    "Policy",
    "Customer",
    # Provider
    "Provider",
    # Service
    "ServiceDispatch",
    "ServiceType",
    "PROVIDER_TAGS",
    "SERVICE_LABELS",
    # Notification
    "Notification",
    "NotificationType",
    "NotificationStatus",
]
