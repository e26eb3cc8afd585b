"""Per-user usage accrual and cost-limit checks."""

from datetime import UTC, datetime
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.billing.plans import BillingPolicy, calculate_default_usage_limit
from orgbilling.config import settings
from orgbilling.models.billing import Subscription, UsageRecord

logger = structlog.get_logger()


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    """Exact decimal for a stored or user-supplied amount."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class UsageTracker:
    """Accrues cost onto users' usage records."""

    def __init__(self, policy: BillingPolicy | None = None):
        self.policy = policy or BillingPolicy.from_settings()

    async def get_usage_record(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> UsageRecord | None:
        result = await session.execute(
            select(UsageRecord).where(UsageRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def track_usage(
        self,
        session: AsyncSession,
        user_id: str,
        cost: float | Decimal,
    ) -> UsageRecord:
        """
        Add cost to the user's current billing period.

        Args:
            session: Database session
            user_id: User UUID
            cost: Amount accrued, in dollars

        Returns:
            The updated usage record
        """
        amount = to_decimal(cost)
        now = datetime.now(UTC)

        # Upsert usage record
        record = await self.get_usage_record(session, user_id)
        if record:
            record.current_period_cost = to_decimal(record.current_period_cost) + amount
            record.last_active = now
        else:
            record = UsageRecord(
                user_id=user_id,
                current_period_cost=amount,
                last_active=now,
            )
            session.add(record)

        await session.commit()

        logger.info(
            "usage_tracked",
            user_id=user_id,
            cost=float(amount),
            total=float(record.current_period_cost),
        )

        self._check_limit_alert(record)
        return record

    def _check_limit_alert(self, record: UsageRecord) -> None:
        """Warn when a user is close to their usage limit."""
        limit = (
            to_decimal(record.current_usage_limit)
            if record.current_usage_limit is not None
            else to_decimal(settings.default_member_usage_limit)
        )
        if limit <= 0:
            return

        current = to_decimal(record.current_period_cost)
        percent = current / limit * 100
        if percent >= to_decimal(settings.usage_alert_percent):
            logger.warning(
                "usage_limit_approaching",
                user_id=record.user_id,
                current=float(current),
                limit=float(limit),
                percent=int(percent),
            )

    async def has_exceeded_cost_limit(
        self,
        session: AsyncSession,
        user_id: str,
        subscription: Subscription | None,
    ) -> bool:
        """
        Check whether the user's period cost has reached their limit.

        The limit is the record's own limit when set, otherwise the
        default for the user's subscription.
        """
        if not self.policy.enforce_billing:
            return False

        record = await self.get_usage_record(session, user_id)
        if record is None:
            return False

        if record.current_usage_limit is not None:
            limit = to_decimal(record.current_usage_limit)
        else:
            limit = to_decimal(calculate_default_usage_limit(subscription, self.policy))

        exceeded = to_decimal(record.current_period_cost) >= limit
        if exceeded:
            logger.info(
                "cost_limit_exceeded",
                user_id=user_id,
                current=float(record.current_period_cost),
                limit=float(limit),
            )
        return exceeded
