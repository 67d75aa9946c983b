#!/usr/bin/env python3
"""
Live counter demo: subscribes to item and group counts, then inserts and
clears a few times while the subscriptions print every refreshed value.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from itemstore.config import configure_logging, get_store_config
from itemstore.db.database import Database
from itemstore.services.item_service import ItemService


async def run(db_path: Path, rounds: int) -> None:
    config = get_store_config()
    async with Database(db_path) as db:
        service = ItemService(db, config=config)
        counts = {"items": 0, "groups": 0}

        def on_items(n: int) -> None:
            counts["items"] = n
            print(f"  Items: {n}")

        def on_groups(n: int) -> None:
            counts["groups"] = n
            print(f"  Groups: {n}")

        await service.subscribe_item_count(on_items)
        await service.subscribe_group_count(on_groups)

        for i in range(rounds):
            print(f"-- insert round {i + 1}")
            result = await service.insert_random_items()
            print(f"   batch sizes {result.batch_sizes}")
            await service.registry.wait_idle()

        print("-- reset")
        await service.clear_all_items()
        await service.registry.wait_idle()
        print(f"Final: {counts['items']} items, {counts['groups']} groups")
        await service.close()


def main():
    parser = argparse.ArgumentParser(description="Reactive item/group counter demo")
    parser.add_argument("--db-path", type=str, help="Override database path")
    parser.add_argument("--rounds", type=int, default=3, help="Number of insert rounds")
    args = parser.parse_args()

    configure_logging()
    db_path = Path(args.db_path) if args.db_path else get_store_config().db_path
    asyncio.run(run(db_path, args.rounds))


if __name__ == "__main__":
    main()
