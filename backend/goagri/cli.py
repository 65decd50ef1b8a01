"""Management CLI for admin operations.

Usage:
    python -m goagri.cli create-tables                          # Create missing tables (dev/test)
    python -m goagri.cli create-user EMAIL --name NAME --role superadmin
    python -m goagri.cli issue-token EMAIL                      # Mint a bearer token for an account
    python -m goagri.cli pending                                # Show actions awaiting approval
"""

import argparse
import asyncio
import sys

from sqlalchemy import select

from goagri.auth.jwt import create_access_token
from goagri.database import Base, async_session, engine
from goagri.models import *  # noqa: F401,F403  registers every table on Base.metadata
from goagri.models.activity_log import ActivityLog, LogStatus
from goagri.models.user import User, UserRole


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print(f"  OK ({len(Base.metadata.tables)} tables)")


async def create_user(email: str, name: str | None, role: str):
    async with async_session() as session:
        existing = await session.scalar(select(User).where(User.email == email))
        if existing:
            print(f"  User already exists: {existing.id} ({existing.role})")
            return
        user = User(email=email, name=name, role=role)
        session.add(user)
        await session.commit()
        print(f"  Created {role} {email}: {user.id}")


async def issue_token(email: str) -> int:
    async with async_session() as session:
        user = await session.scalar(select(User).where(User.email == email))
    if user is None or not user.active:
        print(f"  No active account for {email}", file=sys.stderr)
        return 1
    print(create_access_token(user.id, user.role))
    return 0


async def list_pending():
    async with async_session() as session:
        result = await session.execute(
            select(ActivityLog)
            .where(ActivityLog.status == LogStatus.PENDING.value)
            .order_by(ActivityLog.created_at.desc())
        )
        logs = result.scalars().all()
    for log in logs:
        print(f"  {log.id}  {log.created_at:%Y-%m-%d %H:%M}  {log.description}")
    print(f"\n{len(logs)} pending")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m goagri.cli")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("create-tables")

    p_user = sub.add_parser("create-user")
    p_user.add_argument("email")
    p_user.add_argument("--name")
    p_user.add_argument(
        "--role",
        default=UserRole.ADMIN.value,
        choices=[r.value for r in UserRole],
    )

    p_token = sub.add_parser("issue-token")
    p_token.add_argument("email")

    sub.add_parser("pending")

    args = parser.parse_args(argv)
    if args.cmd == "create-tables":
        asyncio.run(create_tables())
    elif args.cmd == "create-user":
        asyncio.run(create_user(args.email, args.name, args.role))
    elif args.cmd == "issue-token":
        return asyncio.run(issue_token(args.email))
    elif args.cmd == "pending":
        asyncio.run(list_pending())
    return 0


if __name__ == "__main__":
    sys.exit(main())
