#!/usr/bin/env python3
"""Remove expired refresh tokens from the ledger.

The running service sweeps on its own every REFRESH_TOKEN_SWEEP_INTERVAL
seconds; this is for cron jobs or one-off maintenance.

Usage:
    python scripts/sweep_expired_tokens.py
    python scripts/sweep_expired_tokens.py --database-url postgresql+asyncpg://...
"""

import argparse
import asyncio

from scoopauth.core.config import get_settings
from scoopauth.core.database import create_engine, create_session_maker
from scoopauth.core.logging import setup_logging
from scoopauth.services.token_ledger import TokenLedger


async def sweep(database_url: str | None) -> int:
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})

    engine = create_engine(settings)
    try:
        async with create_session_maker(engine)() as db:
            return await TokenLedger(db, settings).cleanup_expired()
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Delete expired refresh tokens")
    parser.add_argument(
        "--database-url",
        help="Database URL (default: from DATABASE_URL env var)",
    )
    args = parser.parse_args()

    setup_logging(level="INFO", format_type="dev")
    removed = asyncio.run(sweep(args.database_url))
    print(f"Removed {removed} expired refresh token(s)")


if __name__ == "__main__":
    main()
