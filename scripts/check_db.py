"""Quick check of database state."""
import asyncio
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from itemstore.config import get_store_config
from itemstore.db.database import Database
from itemstore.db.item_repo import ItemRepository


async def main():
    db_path = Path(sys.argv[1]) if len(sys.argv) > 1 else get_store_config().db_path
    async with Database(db_path) as db:
        repo = ItemRepository(db)

        print("=== Items ===")
        print(f"Total: {await repo.count_items()}")

        print("\n=== Groups ===")
        sizes = await repo.group_sizes()
        print(f"Total: {len(sizes)}")
        for group_id, size in sizes.items():
            names = [i.name for i in await repo.list_items(group_id)]
            print(f"  {group_id} | {size:>2} | {', '.join(names)}")


asyncio.run(main())
