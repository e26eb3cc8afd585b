"""Organization billing and subscription endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.api.schemas import (
    OrganizationBillingData,
    OrganizationBillingSummary,
    UpdateUsageLimitRequest,
    UpdateUsageLimitResponse,
    UserSubscriptionState,
)
from orgbilling.billing.plans import BillingPolicy
from orgbilling.database import get_session
from orgbilling.exceptions import BillingValidationError
from orgbilling.services.organization_billing import UsageAggregator
from orgbilling.services.subscription import SubscriptionResolver

logger = structlog.get_logger()
router = APIRouter()


def get_policy() -> BillingPolicy:
    """Billing policy dependency."""
    return BillingPolicy.from_settings()


def get_resolver(policy: BillingPolicy = Depends(get_policy)) -> SubscriptionResolver:
    return SubscriptionResolver(policy=policy)


def get_aggregator(
    resolver: SubscriptionResolver = Depends(get_resolver),
) -> UsageAggregator:
    return UsageAggregator(resolver=resolver)


@router.get(
    "/organizations/{organization_id}/billing",
    response_model=OrganizationBillingData,
)
async def get_organization_billing(
    organization_id: str,
    session: AsyncSession = Depends(get_session),
    aggregator: UsageAggregator = Depends(get_aggregator),
):
    """Billing totals and per-member usage, sorted by usage."""
    data = await aggregator.get_organization_billing_data(session, organization_id)
    if data is None:
        raise HTTPException(status_code=404, detail="No billing data for organization")
    return data


@router.get(
    "/organizations/{organization_id}/billing/summary",
    response_model=OrganizationBillingSummary,
)
async def get_organization_billing_summary(
    organization_id: str,
    session: AsyncSession = Depends(get_session),
    aggregator: UsageAggregator = Depends(get_aggregator),
):
    """
    Admin dashboard summary.

    Includes:
    - Usage totals against the seat-based limit
    - Seat utilization
    - Members over or near their limit
    - Top members by usage
    """
    summary = await aggregator.aggregate(session, organization_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="No billing data for organization")
    return summary


@router.put(
    "/organizations/{organization_id}/members/{member_id}/usage-limit",
    response_model=UpdateUsageLimitResponse,
)
async def update_member_usage_limit(
    organization_id: str,
    member_id: str,
    request: UpdateUsageLimitRequest,
    session: AsyncSession = Depends(get_session),
    aggregator: UsageAggregator = Depends(get_aggregator),
):
    """Set a member's usage limit. Limits below the floor are rejected."""
    try:
        updated = await aggregator.set_member_usage_limit(
            session,
            organization_id,
            member_id,
            request.limit,
            request.admin_user_id,
        )
    except BillingValidationError as e:
        logger.info(
            "usage_limit_rejected",
            organization_id=organization_id,
            member_id=member_id,
            limit=request.limit,
        )
        raise HTTPException(status_code=400, detail=str(e))

    if not updated:
        raise HTTPException(status_code=404, detail="Member not found")

    return UpdateUsageLimitResponse(
        organization_id=organization_id,
        member_id=member_id,
        limit=request.limit,
    )


@router.get("/users/{user_id}/subscription", response_model=UserSubscriptionState)
async def get_user_subscription(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    resolver: SubscriptionResolver = Depends(get_resolver),
):
    """Resolved plan, feature flags and limit status for a user."""
    return await resolver.get_user_subscription_state(session, user_id)
