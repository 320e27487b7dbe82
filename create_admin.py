"""
create_admin.py
---------------
Bootstrap the first platform admin.

Creates a primary_admin without a password and prints a one-time setup link
(valid 48 hours) where they choose one.

Usage:
    python create_admin.py admin@example.com "Ada Admin"
"""

import argparse
import asyncio

from saaskit.core.errors import ConflictError
from saaskit.core.tenant_resolver import get_base_url
from saaskit.db.session import dispose_engine, get_session_factory, init_engine
from saaskit.models.admin import AdminRole
from saaskit.services.admin_service import AdminService


async def create_primary_admin(email: str, name: str) -> str:
    init_engine()
    try:
        async with get_session_factory()() as session:
            admin = await AdminService.create(session, email, name, AdminRole.primary_admin)
            setup = await AdminService.create_setup_token(session, admin.id)
            await session.commit()
            return f"{get_base_url()}/admin/setup?token={setup.token}"
    finally:
        await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a primary platform admin")
    parser.add_argument("email")
    parser.add_argument("name")
    args = parser.parse_args()

    try:
        url = asyncio.run(create_primary_admin(args.email, args.name))
    except ConflictError as exc:
        raise SystemExit(f"Error: {exc.message}")
    print(f"Admin created. Setup link (valid 48 hours):\n  {url}")


if __name__ == "__main__":
    main()
