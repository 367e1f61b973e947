"""Utility script to create (or reset) the configured Mehfil tables."""
from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import create_async_engine

from mehfil.core.settings import settings
from mehfil.db.session import create_tables, drop_tables


async def ensure_tables(db_url: str, *, drop: bool = False) -> None:
    """Create every Mehfil table, optionally dropping them first."""
    engine = create_async_engine(db_url)
    try:
        if drop:
            await drop_tables(engine)
            print("[ensure_db] dropped all Mehfil tables")
        await create_tables(engine)
        print("[ensure_db] tables are in place")
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Ensure or reset the Mehfil tables")
    parser.add_argument(
        "--drop-tables",
        action="store_true",
        help="Drop every Mehfil table before creating them again.",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    try:
        asyncio.run(ensure_tables(args.url or settings.database_url, drop=args.drop_tables))
    except Exception as exc:
        print(f"[ensure_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
