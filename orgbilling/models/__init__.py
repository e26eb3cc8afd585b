"""Database models."""

from orgbilling.models.base import Base
from orgbilling.models.billing import Subscription, SubscriptionStatus, UsageRecord
from orgbilling.models.organization import Member, MemberRole, Organization, User

__all__ = [
    "Base",
    "User",
    "Organization",
    "Member",
    "MemberRole",
    "Subscription",
    "SubscriptionStatus",
    "UsageRecord",
]
