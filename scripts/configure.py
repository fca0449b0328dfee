"""Store feed credentials and the cron mode, then print the trigger URL."""

from __future__ import annotations

import argparse

from dotenv import load_dotenv

from feedsync.db.migrate import run_migrations
from feedsync.db.options import OptionStore
from feedsync.db.session import create_engine_from_env
from feedsync.ingest.models import EIKON, GVAMAX
from feedsync.settings import (
    CRON_MODE_KEY,
    CRON_MODES,
    SourceCredentials,
    cron_secret,
    save_credentials,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--source", choices=[EIKON, GVAMAX])
    parser.add_argument("--account-id")
    parser.add_argument("--access-token")
    parser.add_argument("--cron-mode", choices=CRON_MODES)
    parser.add_argument("--base-url", default="http://localhost:8000")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    engine = create_engine_from_env()
    run_migrations(engine)
    options = OptionStore(engine)

    if args.source:
        if not (args.account_id and args.access_token):
            raise SystemExit("--account-id and --access-token are required with --source")
        save_credentials(options, args.source, SourceCredentials(args.account_id, args.access_token))
        print(f"Saved {args.source} credentials")
    if args.cron_mode:
        options.set(CRON_MODE_KEY, args.cron_mode)
        print(f"Cron mode set to {args.cron_mode}")
    print(f"External trigger: {args.base_url.rstrip('/')}/cron?pass={cron_secret(options)}")


if __name__ == "__main__":
    main()
