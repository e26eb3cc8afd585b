"""Subscription resolution across direct and organization ownership."""

from typing import Iterable

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.billing.plans import PLAN_CHECKS, PLAN_PRIORITY, BillingPolicy, Plan, classify
from orgbilling.models.billing import Subscription, SubscriptionStatus
from orgbilling.models.organization import Member
from orgbilling.services.usage_tracker import UsageTracker

logger = structlog.get_logger()


class SubscriptionInfo(BaseModel):
    """Read-only view of a subscription row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    reference_id: str
    plan: str
    status: str
    seats: int | None = None


class SubscriptionFeatures(BaseModel):
    sharing_enabled: bool
    multiplayer_enabled: bool
    workspace_collaboration_enabled: bool


class UserSubscriptionState(BaseModel):
    """Everything the product needs to know about a user's plan."""

    is_pro: bool
    is_team: bool
    is_enterprise: bool
    is_free: bool
    highest_priority_subscription: SubscriptionInfo | None = None
    features: SubscriptionFeatures
    has_exceeded_limit: bool
    plan_name: str


def select_highest_priority(subscriptions: Iterable[Subscription]) -> Subscription | None:
    """
    Pick the best subscription by plan priority.

    Within a tier the first one encountered wins. Returns None when no
    subscription is an active paid plan.
    """
    candidates = list(subscriptions)
    for plan in PLAN_PRIORITY:
        check = PLAN_CHECKS[plan]
        for subscription in candidates:
            if check(subscription):
                return subscription
    return None


def _meets(tier: Plan, minimum: Plan) -> bool:
    """True when tier is at or above minimum in PLAN_PRIORITY."""
    if tier not in PLAN_PRIORITY:
        return False
    return PLAN_PRIORITY.index(tier) <= PLAN_PRIORITY.index(minimum)


class SubscriptionResolver:
    """
    Resolves the single highest-priority active plan for a principal.

    A principal is a user or an organization. Users also inherit the
    subscriptions of every organization they belong to.
    """

    def __init__(
        self,
        policy: BillingPolicy | None = None,
        usage_tracker: UsageTracker | None = None,
    ):
        self.policy = policy or BillingPolicy.from_settings()
        self.usage_tracker = usage_tracker or UsageTracker(self.policy)

    async def _active_subscriptions(
        self,
        session: AsyncSession,
        reference_ids: list[str],
    ) -> list[Subscription]:
        if not reference_ids:
            return []
        result = await session.execute(
            select(Subscription).where(
                Subscription.reference_id.in_(reference_ids),
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
        )
        return list(result.scalars().all())

    async def resolve(
        self,
        session: AsyncSession,
        principal_id: str,
    ) -> Subscription | None:
        """
        Get the highest-priority active subscription for a principal.

        Priority: enterprise > team > pro. Data-access errors are logged
        and reported as "no subscription", so callers see the free tier.

        Args:
            session: Database session
            principal_id: User or organization UUID

        Returns:
            The winning Subscription, or None for the free tier
        """
        try:
            personal = await self._active_subscriptions(session, [principal_id])

            result = await session.execute(
                select(Member.organization_id).where(Member.user_id == principal_id)
            )
            org_ids = list(result.scalars().all())
            org_subs = await self._active_subscriptions(session, org_ids)

            return select_highest_priority([*personal, *org_subs])
        except SQLAlchemyError as e:
            logger.error(
                "subscription_resolution_failed",
                principal_id=principal_id,
                error=str(e),
            )
            return None

    async def _has_plan_at_least(
        self,
        session: AsyncSession,
        user_id: str,
        minimum: Plan,
    ) -> bool:
        if not self.policy.enforce_billing:
            return True
        subscription = await self.resolve(session, user_id)
        return _meets(classify(subscription), minimum)

    async def is_pro_plan(self, session: AsyncSession, user_id: str) -> bool:
        """Pro or better, directly or through an organization."""
        return await self._has_plan_at_least(session, user_id, Plan.PRO)

    async def is_team_plan(self, session: AsyncSession, user_id: str) -> bool:
        """Team or enterprise, directly or through an organization."""
        if not self.policy.enforce_billing:
            return True
        subscription = await self.resolve(session, user_id)
        is_team = _meets(classify(subscription), Plan.TEAM)
        if is_team:
            logger.info("team_plan_detected", user_id=user_id, plan=subscription.plan)
        return is_team

    async def is_enterprise_plan(self, session: AsyncSession, user_id: str) -> bool:
        if not self.policy.enforce_billing:
            return True
        subscription = await self.resolve(session, user_id)
        is_enterprise = classify(subscription) is Plan.ENTERPRISE
        if is_enterprise:
            logger.info("enterprise_plan_detected", user_id=user_id, plan=subscription.plan)
        return is_enterprise

    async def is_sharing_enabled(self, session: AsyncSession, user_id: str) -> bool:
        return await self._has_plan_at_least(session, user_id, Plan.PRO)

    async def is_multiplayer_enabled(self, session: AsyncSession, user_id: str) -> bool:
        return await self._has_plan_at_least(session, user_id, Plan.TEAM)

    async def is_workspace_collaboration_enabled(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> bool:
        return await self._has_plan_at_least(session, user_id, Plan.TEAM)

    async def has_exceeded_cost_limit(self, session: AsyncSession, user_id: str) -> bool:
        if not self.policy.enforce_billing:
            return False
        subscription = await self.resolve(session, user_id)
        return await self.usage_tracker.has_exceeded_cost_limit(session, user_id, subscription)

    async def get_user_subscription_state(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> UserSubscriptionState:
        """
        Get all subscription information for a user in one call.

        Resolves once and derives every flag from that result.
        """
        if not self.policy.enforce_billing:
            return UserSubscriptionState(
                is_pro=True,
                is_team=True,
                is_enterprise=True,
                is_free=False,
                highest_priority_subscription=None,
                features=SubscriptionFeatures(
                    sharing_enabled=True,
                    multiplayer_enabled=True,
                    workspace_collaboration_enabled=True,
                ),
                has_exceeded_limit=False,
                plan_name=Plan.PRO.value,
            )

        subscription = await self.resolve(session, user_id)
        tier = classify(subscription)
        has_exceeded = await self.usage_tracker.has_exceeded_cost_limit(
            session, user_id, subscription
        )

        return UserSubscriptionState(
            is_pro=_meets(tier, Plan.PRO),
            is_team=_meets(tier, Plan.TEAM),
            is_enterprise=tier is Plan.ENTERPRISE,
            is_free=tier is Plan.FREE,
            highest_priority_subscription=(
                SubscriptionInfo.model_validate(subscription) if subscription else None
            ),
            features=SubscriptionFeatures(
                sharing_enabled=_meets(tier, Plan.PRO),
                multiplayer_enabled=_meets(tier, Plan.TEAM),
                workspace_collaboration_enabled=_meets(tier, Plan.TEAM),
            ),
            has_exceeded_limit=has_exceeded,
            plan_name=tier.value,
        )
