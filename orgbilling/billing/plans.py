"""Plan tiers, classification, pricing and usage-limit rules."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from orgbilling.config import settings
from orgbilling.models.billing import Subscription, SubscriptionStatus


class Plan(str, Enum):
    """Subscription plan tiers."""

    FREE = "free"
    PRO = "pro"
    TEAM = "team"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: "Plan | str | None") -> Optional["Plan"]:
        """Plan for a stored value, None when unrecognised."""
        if isinstance(value, Plan):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


# Highest first. FREE is what you get when nothing here matches.
PLAN_PRIORITY: tuple[Plan, ...] = (Plan.ENTERPRISE, Plan.TEAM, Plan.PRO)

# Seat-priced plans whose limits scale with licensed seats
SEAT_BASED_PLANS = frozenset({Plan.TEAM, Plan.ENTERPRISE})


def _is_active_plan(subscription: Subscription | None, plan: Plan) -> bool:
    return (
        subscription is not None
        and subscription.plan == plan.value
        and subscription.status == SubscriptionStatus.ACTIVE.value
    )


def check_enterprise_plan(subscription: Subscription | None) -> bool:
    return _is_active_plan(subscription, Plan.ENTERPRISE)


def check_team_plan(subscription: Subscription | None) -> bool:
    return _is_active_plan(subscription, Plan.TEAM)


def check_pro_plan(subscription: Subscription | None) -> bool:
    return _is_active_plan(subscription, Plan.PRO)


PLAN_CHECKS = {
    Plan.ENTERPRISE: check_enterprise_plan,
    Plan.TEAM: check_team_plan,
    Plan.PRO: check_pro_plan,
}


def classify(subscription: Subscription | None) -> Plan:
    """Paid tier of an active subscription, FREE otherwise."""
    for plan in PLAN_PRIORITY:
        if PLAN_CHECKS[plan](subscription):
            return plan
    return Plan.FREE


class PlanPricing(BaseModel):
    """Per-seat price for a plan."""

    model_config = ConfigDict(frozen=True)

    plan: Plan | None
    base_price: float
    seat_based: bool = False


class BillingPolicy(BaseModel):
    """
    Runtime billing enforcement toggle.

    With enforce_billing off every plan check passes, cost limits never
    trip and usage limits are effectively unbounded.
    """

    model_config = ConfigDict(frozen=True)

    enforce_billing: bool = True

    @classmethod
    def from_settings(cls) -> "BillingPolicy":
        return cls(enforce_billing=settings.enforce_billing)


def _price_table() -> dict[Plan, float]:
    return {
        Plan.FREE: 0.0,
        Plan.PRO: settings.price_per_seat_pro,
        Plan.TEAM: settings.price_per_seat_team,
        Plan.ENTERPRISE: settings.price_per_seat_enterprise,
    }


def get_plan_pricing(
    plan: Plan | str | None,
    subscription: Subscription | None = None,
) -> PlanPricing:
    """
    Look up the per-seat price for a plan.

    Enterprise subscriptions may carry a negotiated ``per_seat_allowance``
    in their metadata, which replaces the list price when positive.
    Unknown plans are priced at zero.

    Args:
        plan: Plan tier or its stored string value
        subscription: Subscription providing pricing overrides

    Returns:
        PlanPricing for the plan
    """
    tier = Plan.parse(plan)
    if tier is None:
        return PlanPricing(plan=None, base_price=0.0)

    price = _price_table()[tier]

    if tier is Plan.ENTERPRISE and subscription is not None:
        allowance = (subscription.subscription_metadata or {}).get("per_seat_allowance")
        try:
            allowance = float(allowance) if allowance is not None else None
        except (TypeError, ValueError):
            allowance = None
        if allowance and allowance > 0:
            price = allowance

    return PlanPricing(
        plan=tier,
        base_price=price,
        seat_based=tier in SEAT_BASED_PLANS,
    )


def calculate_default_usage_limit(
    subscription: Subscription | None,
    policy: BillingPolicy | None = None,
) -> float:
    """
    Default (and minimum) usage limit for a subscription, in dollars.

    Free users get the free allowance, pro users their plan price, and
    seat-based plans their per-seat price times licensed seats.
    """
    policy = policy or BillingPolicy.from_settings()
    if not policy.enforce_billing:
        return settings.unenforced_usage_limit

    tier = classify(subscription)
    if tier is Plan.FREE:
        return settings.free_usage_limit

    pricing = get_plan_pricing(tier, subscription)
    if tier in SEAT_BASED_PLANS:
        seats = max(subscription.seats or 1, 1)
        return seats * pricing.base_price
    return pricing.base_price


def can_edit_usage_limit(
    subscription: Subscription | None,
    policy: BillingPolicy | None = None,
) -> bool:
    """Only paid plans may raise their own limit."""
    policy = policy or BillingPolicy.from_settings()
    if not policy.enforce_billing:
        return True
    return classify(subscription) is not Plan.FREE


def get_minimum_usage_limit(
    subscription: Subscription | None,
    policy: BillingPolicy | None = None,
) -> float:
    """Users cannot set a limit below their plan's default."""
    return calculate_default_usage_limit(subscription, policy)
