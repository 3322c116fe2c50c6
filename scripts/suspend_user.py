#!/usr/bin/env python3
"""Suspend an account and revoke all of its sessions.

Sets the account status to SUSPENDED, deletes every refresh token and flags
the user for re-authentication so outstanding access tokens stop working.

Usage:
    python scripts/suspend_user.py <user-id> --reason "Reported for spam"
"""

import argparse
import asyncio
import sys
from uuid import UUID

from scoopauth.core.cache import CacheStore, create_redis_client
from scoopauth.core.config import get_settings
from scoopauth.core.database import create_engine, create_session_maker
from scoopauth.core.errors import AppError
from scoopauth.core.logging import setup_logging
from scoopauth.services.security import SecurityMonitor


async def suspend(user_id: UUID, reason: str) -> None:
    settings = get_settings()
    engine = create_engine(settings)
    cache = CacheStore(create_redis_client(settings.redis_url))
    try:
        monitor = SecurityMonitor(cache, create_session_maker(engine))
        await monitor.block_user(str(user_id), reason)
    finally:
        await cache.close()
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Suspend a ScoopSocials account")
    parser.add_argument("user_id", type=UUID, help="ID of the user to suspend")
    parser.add_argument("--reason", default="Administrative suspension", help="Logged reason")
    args = parser.parse_args()

    setup_logging(level="INFO", format_type="dev")
    try:
        asyncio.run(suspend(args.user_id, args.reason))
    except AppError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)
    print(f"User {args.user_id} suspended")


if __name__ == "__main__":
    main()
