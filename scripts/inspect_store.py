import asyncio
import sys
import argparse
from pathlib import Path

# Add project root to sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from filterflow.config import settings
from filterflow.services.database import DedupStore

async def show_stats(store: DedupStore):
    """Print how many links each table holds."""
    irrelevant, processed = await store.counts()
    print(f"Dedup store: {store.path}")
    print(f"  Irrelevant links: {irrelevant}")
    print(f"  Processed links:  {processed}")

async def check_link(store: DedupStore, link: str):
    """Print the recorded status of a single link."""
    status = await store.status(link)
    if status is None:
        print(f"'{link}' has not been judged yet.")
    else:
        print(f"'{link}': {status}")

async def main():
    parser = argparse.ArgumentParser(description="Inspect the FilterFlow dedup store")
    parser.add_argument('--db', type=Path, default=settings.db_path, help='Path to the store database')
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    subparsers.add_parser('stats', help='Show link counts per table')

    check_parser = subparsers.add_parser('check', help='Show the status of one link')
    check_parser.add_argument('link', help='Link to look up')

    args = parser.parse_args()

    if args.command not in ('stats', 'check'):
        parser.print_help()
        return

    if not args.db.exists():
        print(f"No store found at {args.db}")
        return

    async with await DedupStore.open(args.db) as store:
        if args.command == 'stats':
            await show_stats(store)
        else:
            await check_link(store, args.link)

if __name__ == "__main__":
    asyncio.run(main())
