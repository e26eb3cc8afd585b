"""Billing services."""

from orgbilling.services.organization_billing import UsageAggregator
from orgbilling.services.subscription import SubscriptionResolver
from orgbilling.services.usage_tracker import UsageTracker

__all__ = [
    "SubscriptionResolver",
    "UsageAggregator",
    "UsageTracker",
]
