"""Seed data script for development and testing.

Creates:
- 1 system admin, 1 admin and SEED_BIDDERS bidders (BID0001 ...)
- 1 approved auction starting AUCTION_START_IN_MINUTES from now in the
  civil timezone, with every seeded bidder invited

Environment Variables:
    SEED_BIDDERS: Number of bidders to create (default: 20)
    AUCTION_START_IN_MINUTES: Minutes until the seeded auction starts (default: 2)
    AUCTION_DURATION_MINUTES: Auction duration in minutes (default: 20)

Usage:
    cd backend && python -m scripts.seed_data
"""

import asyncio
import os
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procubid.core.clock import Clock
from procubid.core.config import settings
from procubid.core.database import async_session_maker, engine
from procubid.models import Auction, AuctionBidder, User
from procubid.models.enums import AuctionStatus, Currency, UserRole
from procubid.services.auction_service import next_auction_code
from procubid.store.sql import SqlAuctionStore

SEED_BIDDERS = int(os.getenv("SEED_BIDDERS", "20"))
AUCTION_START_IN_MINUTES = int(os.getenv("AUCTION_START_IN_MINUTES", "2"))
AUCTION_DURATION_MINUTES = int(os.getenv("AUCTION_DURATION_MINUTES", "20"))


async def seed_users(session: AsyncSession) -> list[User]:
    """Create the administrators and the bidder pool.

    Users:
    - System admin: sysadmin@test.com (SYS0001)
    - Admin: admin@test.com (ADM0001)
    - Bidders: bidder0001@test.com to bidderNNNN@test.com (BID0001 ...)
    """
    print("Seeding users...")

    result = await session.execute(select(User).limit(1))
    if result.scalar_one_or_none():
        print("  Users already exist, skipping...")
        result = await session.execute(select(User))
        return list(result.scalars().all())

    users = [
        User(
            user_code="SYS0001",
            name="System Administrator",
            email="sysadmin@test.com",
            role=UserRole.SYSTEM_ADMIN.value,
        ),
        User(
            user_code="ADM0001",
            name="Procurement Admin",
            email="admin@test.com",
            role=UserRole.ADMIN.value,
        ),
    ]

    for i in range(1, SEED_BIDDERS + 1):
        users.append(
            User(
                user_code=f"BID{i:04d}",
                name=f"Bidder {i:04d}",
                email=f"bidder{i:04d}@test.com",
                company=f"Supplier {i:04d} (Pvt) Ltd",
                role=UserRole.BIDDER.value,
            )
        )

    session.add_all(users)
    await session.commit()

    for user in users:
        await session.refresh(user)

    print(f"  Created {len(users)} users")
    return users


async def seed_auction(session: AsyncSession, users: list[User]) -> Auction:
    """Create one approved auction with every bidder invited."""
    print("Seeding auction...")

    clock = Clock(settings.TIMEZONE)
    starts_at = (clock.now() + timedelta(minutes=AUCTION_START_IN_MINUTES)).replace(
        second=0, microsecond=0
    )
    admins = {u.role: u for u in users if u.role != UserRole.BIDDER.value}
    bidders = [u for u in users if u.role == UserRole.BIDDER.value]

    code = next_auction_code(await SqlAuctionStore(session).latest_auction_code())
    auction = Auction(
        auction_code=code,
        title="Supply of A4 Paper Reams",
        category="Stationery",
        sbu="Head Office",
        auction_date=starts_at.date(),
        start_time=starts_at.time(),
        duration_minutes=AUCTION_DURATION_MINUTES,
        ceiling_price=Decimal("1000.00"),
        step_amount=Decimal("0.05"),
        currency=Currency.LKR.value,
        status=AuctionStatus.APPROVED.value,
        created_by=admins[UserRole.ADMIN.value].id,
        approved_by=admins[UserRole.SYSTEM_ADMIN.value].id,
        approved_at=clock.now(),
    )
    session.add(auction)
    await session.flush()

    session.add_all(AuctionBidder(auction_id=auction.id, bidder_id=b.id) for b in bidders)
    await session.commit()
    await session.refresh(auction)

    print(f"  Created auction: {auction.auction_code} ({auction.id})")
    print(f"    Start: {auction.auction_date} {auction.start_time} {settings.TIMEZONE}")
    print(f"    Duration: {AUCTION_DURATION_MINUTES} minutes")
    print(f"    Ceiling: {auction.ceiling_price}, step: {auction.step_amount}")
    print(f"    Invited bidders: {len(bidders)}")

    return auction


async def main():
    """Main seed function."""
    print("=" * 60)
    print("ProcuBid E-Auction - Seed Data Script")
    print("=" * 60)
    print(f"  SEED_BIDDERS: {SEED_BIDDERS}")
    print(f"  AUCTION_START_IN_MINUTES: {AUCTION_START_IN_MINUTES}")
    print(f"  AUCTION_DURATION_MINUTES: {AUCTION_DURATION_MINUTES}")
    print("=" * 60)

    async with async_session_maker() as session:
        users = await seed_users(session)
        auction = await seed_auction(session, users)

    print("=" * 60)
    print("Seed data complete!")
    print(f"  Users: {len(users)}")
    print(f"  Auction: {auction.auction_code}")
    print("")
    print("Place a bid once the auction is live:")
    print("  curl -X POST http://localhost:8000/api/v1/bids \\")
    print("    -H 'X-User-Id: <bidder uuid>' -H 'X-User-Role: bidder' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"auction_id\": \"{auction.auction_code}\", \"amount\": \"995.00\"}}'")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
