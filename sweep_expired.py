"""
sweep_expired.py
----------------
Housekeeping for expired invitations, admin sessions and used tokens.
Safe to run at any interval; nothing depends on it.

Usage:
    python sweep_expired.py
"""

import asyncio

from saaskit.core.logging import configure_logging
from saaskit.db.session import dispose_engine, get_session_factory, init_engine
from saaskit.services.maintenance import sweep_expired


async def run() -> dict[str, int]:
    init_engine()
    try:
        async with get_session_factory()() as session:
            counts = await sweep_expired(session)
            await session.commit()
            return counts
    finally:
        await dispose_engine()


if __name__ == "__main__":
    configure_logging()
    print(asyncio.run(run()))
