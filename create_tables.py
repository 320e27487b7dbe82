"""
create_tables.py
----------------
One-shot script to create all database tables.
Use this for quick setup. For production migrations, use Alembic instead.

Usage:
    python create_tables.py
"""

import asyncio

from saaskit.db.session import dispose_engine, init_engine
from saaskit.models import Base  # Imports all models so metadata is populated


async def create_all_tables() -> None:
    engine = init_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await dispose_engine()
    print("All tables created successfully.")


if __name__ == "__main__":
    asyncio.run(create_all_tables())
