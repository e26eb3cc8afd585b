"""Users, organizations and memberships."""

from enum import Enum

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orgbilling.models.base import Base, TimestampMixin, UUIDMixin


class MemberRole(str, Enum):
    """Role of a user inside an organization."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class User(Base, UUIDMixin, TimestampMixin):
    """A person who can belong to organizations and own a subscription."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    # Relationships
    memberships = relationship(
        "Member",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    usage_record = relationship(
        "UsageRecord",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Organization(Base, UUIDMixin, TimestampMixin):
    """Top-level tenant billed per licensed seat."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    # Relationships
    members = relationship(
        "Member",
        back_populates="organization",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Organization {self.name} ({self.slug})>"


class Member(Base, UUIDMixin, TimestampMixin):
    """Links a user to an organization. created_at is the join time."""

    __tablename__ = "members"

    organization_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=MemberRole.MEMBER.value,
    )  # owner, admin, member

    # Relationships
    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        Index("idx_member_org_user", "organization_id", "user_id", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Member user={self.user_id[:8]} org={self.organization_id[:8]} ({self.role})>"
