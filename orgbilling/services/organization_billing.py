"""Seat-based organization billing and per-member usage reporting."""

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orgbilling.billing.plans import PlanPricing, get_plan_pricing
from orgbilling.config import settings
from orgbilling.exceptions import UsageLimitError
from orgbilling.models.billing import Subscription, SubscriptionStatus, UsageRecord
from orgbilling.models.organization import Member, Organization, User
from orgbilling.services.subscription import SubscriptionResolver
from orgbilling.services.usage_tracker import to_decimal

logger = structlog.get_logger()

PricingLookup = Callable[[str, Optional[Subscription]], PlanPricing]

CENT = Decimal("0.01")


def round_money(value: Decimal) -> float:
    """Round to 2 dp, halves away from zero."""
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


# === Result models ===


class MemberUsage(BaseModel):
    """Usage of one organization member in the current period."""

    user_id: str
    user_name: str
    user_email: str
    current_usage: float
    usage_limit: float
    percent_used: float
    is_over_limit: bool
    role: str
    joined_at: datetime | None = None
    last_active: datetime | None = None


class OrganizationBillingData(BaseModel):
    """Billing totals and member usage for an organization."""

    organization_id: str
    organization_name: str
    subscription_plan: str
    subscription_status: str
    total_seats: int
    used_seats: int
    total_current_usage: float
    total_usage_limit: float
    average_usage_per_member: float
    billing_period_start: datetime | None = None
    billing_period_end: datetime | None = None
    members: list[MemberUsage]


class OrganizationInfo(BaseModel):
    id: str
    name: str
    plan: str
    status: str


class UsageTotals(BaseModel):
    total: float
    limit: float
    average: float
    percent_used: float


class SeatUsage(BaseModel):
    total: int
    used: int
    available: int


class UsageAlerts(BaseModel):
    members_over_limit: int
    members_near_limit: int


class BillingPeriod(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class TopUser(BaseModel):
    name: str
    usage: float
    limit: float
    percent_used: float


class OrganizationBillingSummary(BaseModel):
    """Admin dashboard view of an organization's billing."""

    organization: OrganizationInfo
    usage: UsageTotals
    seats: SeatUsage
    alerts: UsageAlerts
    billing_period: BillingPeriod
    top_users: list[TopUser]


# === Member usage ===


@dataclass(frozen=True)
class UsageSnapshot:
    """
    Usage values for a member, with or without a stored usage record.

    Members who never accrued usage have no record; they are represented
    by ``UsageSnapshot.absent()`` instead of nulls.
    """

    current_usage: Decimal
    usage_limit: Decimal
    billing_period_start: datetime | None = None
    billing_period_end: datetime | None = None
    last_active: datetime | None = None
    has_record: bool = True

    @classmethod
    def absent(cls) -> "UsageSnapshot":
        return cls(
            current_usage=Decimal("0"),
            usage_limit=to_decimal(settings.default_member_usage_limit),
            has_record=False,
        )

    @classmethod
    def from_record(cls, record: UsageRecord | None) -> "UsageSnapshot":
        if record is None:
            return cls.absent()
        limit = (
            to_decimal(record.current_usage_limit)
            if record.current_usage_limit is not None
            else to_decimal(settings.default_member_usage_limit)
        )
        return cls(
            current_usage=to_decimal(record.current_period_cost),
            usage_limit=limit,
            billing_period_start=record.billing_period_start,
            billing_period_end=record.billing_period_end,
            last_active=record.last_active,
        )

    @property
    def percent_used(self) -> Decimal:
        if self.usage_limit <= 0:
            return Decimal("0")
        return self.current_usage / self.usage_limit * 100

    @property
    def is_over_limit(self) -> bool:
        return self.current_usage > self.usage_limit


def licensed_seats(subscription: Subscription, member_count: int) -> int:
    """Seats billed for: the subscription's seats, or the member count when unset."""
    if subscription.seats and subscription.seats > 0:
        return subscription.seats
    return member_count


class UsageAggregator:
    """Computes organization billing totals from member usage records."""

    def __init__(
        self,
        resolver: SubscriptionResolver | None = None,
        pricing: PricingLookup = get_plan_pricing,
    ):
        self.resolver = resolver or SubscriptionResolver()
        self.pricing = pricing

    async def _load_members(
        self,
        session: AsyncSession,
        organization_id: str,
    ) -> list[tuple[Member, User, UsageSnapshot]]:
        result = await session.execute(
            select(Member, User, UsageRecord)
            .join(User, Member.user_id == User.id)
            .outerjoin(UsageRecord, UsageRecord.user_id == Member.user_id)
            .where(Member.organization_id == organization_id)
            .order_by(Member.created_at, Member.id)
        )
        return [
            (member, user, UsageSnapshot.from_record(record))
            for member, user, record in result.all()
        ]

    async def get_organization_billing_data(
        self,
        session: AsyncSession,
        organization_id: str,
    ) -> OrganizationBillingData | None:
        """
        Get billing totals and per-member usage for an organization.

        Billing is based on licensed seats rather than active members, so an
        organization pays for its seat capacity regardless of utilization.

        Args:
            session: Database session
            organization_id: Organization UUID

        Returns:
            OrganizationBillingData, or None when the organization does not
            exist or has no active paid subscription

        Raises:
            SQLAlchemyError: when the database cannot be read
        """
        try:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                logger.warning("organization_not_found", organization_id=organization_id)
                return None

            subscription = await self.resolver.resolve(session, organization_id)
            if subscription is None:
                logger.warning(
                    "organization_subscription_not_found",
                    organization_id=organization_id,
                )
                return None

            rows = await self._load_members(session, organization_id)
        except SQLAlchemyError as e:
            logger.error(
                "organization_billing_failed",
                organization_id=organization_id,
                error=str(e),
            )
            raise

        members = [
            MemberUsage(
                user_id=member.user_id,
                user_name=user.name,
                user_email=user.email,
                current_usage=float(usage.current_usage),
                usage_limit=float(usage.usage_limit),
                percent_used=round_money(usage.percent_used),
                is_over_limit=usage.is_over_limit,
                role=member.role,
                joined_at=member.created_at,
                last_active=usage.last_active,
            )
            for member, user, usage in rows
        ]
        member_count = len(members)

        total_current_usage = sum((usage.current_usage for _, _, usage in rows), Decimal("0"))

        pricing = self.pricing(subscription.plan, subscription)
        seats = licensed_seats(subscription, member_count)

        if subscription.seats and member_count > subscription.seats:
            logger.warning(
                "organization_over_seat_capacity",
                organization_id=organization_id,
                licensed_seats=subscription.seats,
                actual_members=member_count,
                plan=subscription.plan,
            )

        # The seat-based minimum bill, not the sum of members' personal limits
        total_usage_limit = seats * to_decimal(pricing.base_price)

        average_usage = (
            total_current_usage / member_count if member_count else Decimal("0")
        )

        # Billing period is shared across the organization
        first_usage = rows[0][2] if rows else UsageSnapshot.absent()

        return OrganizationBillingData(
            organization_id=organization_id,
            organization_name=organization.name,
            subscription_plan=subscription.plan,
            subscription_status=subscription.status or SubscriptionStatus.ACTIVE.value,
            total_seats=seats,
            used_seats=member_count,
            total_current_usage=round_money(total_current_usage),
            total_usage_limit=round_money(total_usage_limit),
            average_usage_per_member=round_money(average_usage),
            billing_period_start=first_usage.billing_period_start,
            billing_period_end=first_usage.billing_period_end,
            # sorted() is stable, so equal usage keeps query order
            members=sorted(members, key=lambda m: m.current_usage, reverse=True),
        )

    async def aggregate(
        self,
        session: AsyncSession,
        organization_id: str,
    ) -> OrganizationBillingSummary | None:
        """Build the admin dashboard summary for an organization."""
        data = await self.get_organization_billing_data(session, organization_id)
        if data is None:
            return None

        over_limit = sum(1 for m in data.members if m.is_over_limit)
        near_limit = sum(
            1
            for m in data.members
            if not m.is_over_limit and m.percent_used >= settings.near_limit_percent
        )

        total = to_decimal(data.total_current_usage)
        limit = to_decimal(data.total_usage_limit)
        percent_used = total / limit * 100 if limit > 0 else Decimal("0")

        return OrganizationBillingSummary(
            organization=OrganizationInfo(
                id=data.organization_id,
                name=data.organization_name,
                plan=data.subscription_plan,
                status=data.subscription_status,
            ),
            usage=UsageTotals(
                total=data.total_current_usage,
                limit=data.total_usage_limit,
                average=data.average_usage_per_member,
                percent_used=round_money(percent_used),
            ),
            seats=SeatUsage(
                total=data.total_seats,
                used=data.used_seats,
                available=data.total_seats - data.used_seats,
            ),
            alerts=UsageAlerts(
                members_over_limit=over_limit,
                members_near_limit=near_limit,
            ),
            billing_period=BillingPeriod(
                start=data.billing_period_start,
                end=data.billing_period_end,
            ),
            top_users=[
                TopUser(
                    name=m.user_name,
                    usage=m.current_usage,
                    limit=m.usage_limit,
                    percent_used=m.percent_used,
                )
                for m in data.members[: settings.top_users_count]
            ],
        )

    async def set_member_usage_limit(
        self,
        session: AsyncSession,
        organization_id: str,
        member_id: str,
        new_limit: float,
        admin_user_id: str,
    ) -> bool:
        """
        Overwrite a member's usage limit.

        Args:
            session: Database session
            organization_id: Organization UUID (recorded in logs only)
            member_id: User UUID of the member
            new_limit: New limit in dollars
            admin_user_id: User UUID of the admin making the change

        Returns:
            False when no user exists for member_id; nothing is written

        Raises:
            UsageLimitError: new_limit is below the minimum; nothing is written
        """
        minimum = settings.minimum_usage_limit
        if not math.isfinite(new_limit) or new_limit < minimum:
            raise UsageLimitError(new_limit, minimum)

        limit = to_decimal(new_limit)
        now = datetime.now(UTC)

        result = await session.execute(
            update(UsageRecord)
            .where(UsageRecord.user_id == member_id)
            .values(
                current_usage_limit=limit,
                usage_limit_set_by=admin_user_id,
                usage_limit_updated_at=now,
            )
        )
        if result.rowcount == 0:
            if await session.get(User, member_id) is None:
                logger.warning(
                    "member_usage_limit_target_missing",
                    organization_id=organization_id,
                    member_id=member_id,
                )
                return False
            session.add(
                UsageRecord(
                    user_id=member_id,
                    current_period_cost=Decimal("0"),
                    current_usage_limit=limit,
                    usage_limit_set_by=admin_user_id,
                    usage_limit_updated_at=now,
                )
            )

        await session.commit()

        logger.info(
            "member_usage_limit_updated",
            organization_id=organization_id,
            member_id=member_id,
            limit=float(limit),
            admin_user_id=admin_user_id,
        )
        return True
