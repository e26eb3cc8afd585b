"""Plan tiers and pricing rules."""

from orgbilling.billing.plans import (
    PLAN_PRIORITY,
    BillingPolicy,
    Plan,
    PlanPricing,
    calculate_default_usage_limit,
    can_edit_usage_limit,
    check_enterprise_plan,
    check_pro_plan,
    check_team_plan,
    classify,
    get_minimum_usage_limit,
    get_plan_pricing,
)

__all__ = [
    "PLAN_PRIORITY",
    "BillingPolicy",
    "Plan",
    "PlanPricing",
    "calculate_default_usage_limit",
    "can_edit_usage_limit",
    "check_enterprise_plan",
    "check_pro_plan",
    "check_team_plan",
    "classify",
    "get_minimum_usage_limit",
    "get_plan_pricing",
]
