"""
create_tables.py
----------------
One-shot script to create all database tables and, optionally, the first
platform operator account.

Usage:
    python create_tables.py
    python create_tables.py --super-admin ops@example.com 'a-long-password'
"""

import argparse
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.roles import UserRole
from app.core.security import hash_password
from app.models import Base, User  # Imports all models so metadata is populated


async def create_all_tables(super_admin: tuple[str, str] | None = None) -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if super_admin is not None:
        email, password = super_admin
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        async with session_factory() as session:
            existing = await session.execute(select(User).where(User.email == email.lower()))
            if existing.scalar_one_or_none() is None:
                session.add(
                    User(
                        email=email.lower(),
                        hashed_password=hash_password(password),
                        role=UserRole.super_admin.value,
                        tenant_id=None,
                    )
                )
                await session.commit()
                print(f"Super admin {email} created.")
            else:
                print(f"Super admin {email} already exists.")

    await engine.dispose()
    print("All tables created successfully.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--super-admin", nargs=2, metavar=("EMAIL", "PASSWORD"))
    args = parser.parse_args()
    asyncio.run(create_all_tables(tuple(args.super_admin) if args.super_admin else None))
