"""Orderflow database management CLI.

Creates or drops the database schema for the orderflow domain. Run once at
deploy time, before the application starts. Only SQL providers are touched;
with the default in-memory configuration both commands are no-ops.

Usage:
    PROTEAN_ENV=production python src/manage.py setup-db
    PROTEAN_ENV=production python src/manage.py drop-db --yes
"""

import argparse
import sys


def _report(action: str, providers: list[str]) -> None:
    if providers:
        print(f"{action} schema on: {', '.join(providers)}")
    else:
        print("No SQL provider configured; nothing to do.")


def setup_database():
    from orderflow.domain import orderflow
    from orderflow.utils.db import setup_db

    orderflow.init()
    _report("Created", setup_db(orderflow))


def drop_database(confirmed: bool):
    from orderflow.domain import orderflow
    from orderflow.utils.db import drop_db

    if not confirmed:
        print("Refusing to drop tables without --yes.")
        sys.exit(1)

    orderflow.init()
    _report("Dropped", drop_db(orderflow))


def main():
    parser = argparse.ArgumentParser(description="Orderflow database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    drop = subparsers.add_parser("drop-db", help="Drop all database tables")
    drop.add_argument("--yes", action="store_true", help="Confirm dropping every table")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database(args.yes)


if __name__ == "__main__":
    main()
