#!/usr/bin/env python3
"""Initialize the database and optionally seed it with random item batches."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from itemstore.config import configure_logging, get_store_config
from itemstore.db.database import Database
from itemstore.db.item_repo import ItemRepository
from itemstore.errors import SchemaError


async def run(db_path: Path, seed_batches: int) -> None:
    config = get_store_config()
    db = await Database.open(db_path)
    print(f"Database initialized at: {db.path}")
    try:
        repo = ItemRepository(db, item_range=config.item_range, batch_range=config.batch_range)
        for _ in range(seed_batches):
            result = await repo.insert_random_items()
            print(f"  Inserted {result.item_count} items in groups of {result.batch_sizes}")
        print(f"  Items: {await repo.count_items()}  Groups: {await repo.count_groups()}")
    finally:
        await db.close()


def main():
    parser = argparse.ArgumentParser(description="Initialize the database")
    parser.add_argument("--db-path", type=str, help="Override database path")
    parser.add_argument("--seed", type=int, default=0, help="Number of random batches to insert")
    parser.add_argument("--log-level", type=str, help="Logging level (default from ITEMSTORE_LOG_LEVEL)")
    args = parser.parse_args()

    configure_logging(args.log_level)
    db_path = Path(args.db_path) if args.db_path else get_store_config().db_path
    try:
        asyncio.run(run(db_path, args.seed))
    except SchemaError as e:
        print(f"Schema setup failed: {e}", file=sys.stderr)
        sys.exit(1)
    print("Done.")


if __name__ == "__main__":
    main()
