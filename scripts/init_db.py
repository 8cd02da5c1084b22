#!/usr/bin/env python3
"""
Create the database tables and bootstrap the first admin user.

Only admins can create users through the API, so a fresh database needs one
seeded here. Pass --sample to also add a customer, a machine and one user per
role for development.

Usage:
    python scripts/init_db.py --admin-name "Asha" --admin-phone 9876543210 [--sample]
"""

import argparse
import asyncio

from servicedesk.config import settings
from servicedesk.models import Customer, Machine, User, UserRole
from servicedesk.services.database import create_engine, create_session_maker, create_tables
from sqlalchemy import select


async def init_database(admin_name: str, admin_phone: str, admin_email: str = None, sample: bool = False):
    """Create tables and seed the admin user (and optional sample data)."""
    print("Initializing database...")

    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    async_session_maker = create_session_maker(engine)

    print("Creating tables...")
    await create_tables(engine)

    async with async_session_maker() as db:
        existing = await db.scalar(select(User).where(User.role == UserRole.ADMIN).limit(1))
        if existing:
            print(f"Admin already present: {existing.name} (id {existing.id})")
        else:
            admin = User(name=admin_name, phone=admin_phone, email=admin_email, role=UserRole.ADMIN)
            db.add(admin)
            await db.commit()
            await db.refresh(admin)
            print(f"Created admin {admin.name} - use 'Authorization: Bearer {admin.id}'")

        if sample:
            print("Seeding sample data...")
            db.add_all(
                [
                    User(name="Sunil Head", phone="9000000001", role=UserRole.SERVICE_HEAD),
                    User(name="Esha Engineer", phone="9000000002", role=UserRole.ENGINEER),
                    User(name="Sara Sales", phone="9000000003", role=UserRole.SALES),
                    User(name="Chetan Commercial", phone="9000000004", role=UserRole.COMMERCIAL),
                    Customer(name="Precision Tools Pvt Ltd", phone="+91 98765 43210", address="MIDC, Pune"),
                    Machine(
                        name="VMC 850",
                        category="Vertical Machining Center",
                        brand="Haas",
                        warranty_time_in_months=24,
                        serial_number="HS-850-0001",
                    ),
                ]
            )
            await db.commit()

    print("Database initialized successfully!")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--admin-name", required=True)
    parser.add_argument("--admin-phone", required=True)
    parser.add_argument("--admin-email")
    parser.add_argument("--sample", action="store_true", help="Add sample users, customer and machine")
    args = parser.parse_args()

    asyncio.run(init_database(args.admin_name, args.admin_phone, args.admin_email, args.sample))
