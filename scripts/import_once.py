"""Run one import pass from the command line."""

from __future__ import annotations

import argparse
import asyncio

from dotenv import load_dotenv

from feedsync.db.session import create_engine_from_env
from feedsync.jobs.imports import run_imports
from feedsync.utils.logs import configure_logging


async def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("sources", nargs="*", help="source names from sources.yml; all when omitted")
    parser.add_argument("--limit", type=int, help="import only the first N records, without retiring")
    args = parser.parse_args()

    print("Logging to", configure_logging())
    results = await run_imports(args.sources or None, engine=create_engine_from_env(), limit=args.limit)
    for result in results:
        print(
            f"{result.source}: {result.status} "
            f"(created {result.created}, updated {result.updated}, unchanged {result.unchanged}, "
            f"skipped {result.skipped}, failed {result.failed}, retired {result.retired}, "
            f"cursor {result.cursor}/{result.total})"
        )


if __name__ == "__main__":
    asyncio.run(main())
