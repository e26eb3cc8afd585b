#!/usr/bin/env python3
"""Create an organization with an owner and an active subscription."""

import argparse
import asyncio
from datetime import datetime, timedelta, timezone

from orgbilling.billing.plans import Plan
from orgbilling.database import configure_engine, dispose_engine, get_session_context
from orgbilling.models import (
    Member,
    MemberRole,
    Organization,
    Subscription,
    SubscriptionStatus,
    User,
)


async def create_organization(
    name: str,
    slug: str,
    owner_email: str,
    owner_name: str,
    plan: Plan,
    seats: int | None,
) -> dict:
    """Create the organization, its owner membership and subscription."""
    now = datetime.now(timezone.utc)

    async with get_session_context() as session:
        organization = Organization(name=name, slug=slug)
        owner = User(name=owner_name, email=owner_email)
        session.add_all([organization, owner])
        await session.flush()

        session.add(
            Member(
                organization_id=organization.id,
                user_id=owner.id,
                role=MemberRole.OWNER.value,
            )
        )
        subscription = Subscription(
            reference_id=organization.id,
            plan=plan.value,
            status=SubscriptionStatus.ACTIVE.value,
            seats=seats,
            period_start=now,
            period_end=now + timedelta(days=30),
        )
        session.add(subscription)
        await session.flush()

        result = {
            "organization_id": organization.id,
            "owner_id": owner.id,
            "subscription_id": subscription.id,
        }

    await dispose_engine()
    return result


def main():
    parser = argparse.ArgumentParser(description="Create a new organization")
    parser.add_argument("--name", required=True, help="Organization name")
    parser.add_argument("--slug", required=True, help="Unique URL slug")
    parser.add_argument("--owner-email", required=True, help="Owner email")
    parser.add_argument("--owner-name", required=True, help="Owner display name")
    parser.add_argument(
        "--plan",
        choices=[p.value for p in Plan if p is not Plan.FREE],
        default=Plan.TEAM.value,
    )
    parser.add_argument("--seats", type=int, default=None, help="Licensed seats")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (defaults to DATABASE_URL)",
    )

    args = parser.parse_args()
    configure_engine(args.database_url)

    result = asyncio.run(create_organization(
        name=args.name,
        slug=args.slug,
        owner_email=args.owner_email,
        owner_name=args.owner_name,
        plan=Plan(args.plan),
        seats=args.seats,
    ))

    print("\n✅ Organization created successfully!\n")
    print(f"Organization ID:  {result['organization_id']}")
    print(f"Owner ID:         {result['owner_id']}")
    print(f"Subscription ID:  {result['subscription_id']}\n")


if __name__ == "__main__":
    main()
