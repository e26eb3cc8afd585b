"""Subscription and per-user usage models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orgbilling.models.base import Base, TimestampMixin, UUIDMixin

JSONType = JSON().with_variant(JSONB(), "postgresql")


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states. Only ACTIVE counts for billing."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    INCOMPLETE = "incomplete"
    CANCELED = "canceled"
    UNPAID = "unpaid"


class Subscription(Base, UUIDMixin, TimestampMixin):
    """A plan owned by a user or an organization."""

    __tablename__ = "subscriptions"

    # Owner: user id or organization id, no foreign key on purpose
    reference_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
    )

    plan: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )  # free, pro, team, enterprise
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=SubscriptionStatus.ACTIVE.value,
    )
    seats: Mapped[int | None] = mapped_column(Integer, nullable=True)

    period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # e.g. {"per_seat_allowance": 250} for negotiated enterprise pricing
    subscription_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONType,
        nullable=False,
        default=dict,
    )

    __table_args__ = (
        Index("idx_subscription_reference_status", "reference_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Subscription {self.plan} ({self.status}) ref={self.reference_id[:8]}>"


class UsageRecord(Base, UUIDMixin, TimestampMixin):
    """Live billing-period usage state for one user."""

    __tablename__ = "user_stats"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Usage, in dollars
    current_period_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 4),
        nullable=False,
        default=Decimal("0"),
    )
    current_usage_limit: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 4),
        nullable=True,
    )  # Null means the plan default applies

    # Who changed the limit last
    usage_limit_set_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    usage_limit_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Billing period
    billing_period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    billing_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_active: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    user = relationship("User", back_populates="usage_record")

    def __repr__(self) -> str:
        return (
            f"<UsageRecord user={self.user_id[:8]} "
            f"cost={self.current_period_cost} limit={self.current_usage_limit}>"
        )
