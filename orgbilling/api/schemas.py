"""API request/response schemas."""

from pydantic import BaseModel, Field

from orgbilling.services.organization_billing import (
    OrganizationBillingData,
    OrganizationBillingSummary,
)
from orgbilling.services.subscription import UserSubscriptionState


# === Request Schemas ===

class UpdateUsageLimitRequest(BaseModel):
    """Request to change a member's usage limit."""
    limit: float = Field(..., description="New limit in dollars", allow_inf_nan=False)
    admin_user_id: str = Field(..., min_length=1, description="Admin making the change")


# === Response Schemas ===

class UpdateUsageLimitResponse(BaseModel):
    """Result of a usage limit change."""
    organization_id: str
    member_id: str
    limit: float
    updated: bool = True


__all__ = [
    "UpdateUsageLimitRequest",
    "UpdateUsageLimitResponse",
    "OrganizationBillingData",
    "OrganizationBillingSummary",
    "UserSubscriptionState",
]
