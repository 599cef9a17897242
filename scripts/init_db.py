#!/usr/bin/env python3
"""
Create (or recreate) the church registry schema.

Reads the active configuration (CHURCH_REGISTRY_CONFIG or the packaged
defaults), connects, optionally drops every table, and creates the
schema with the ledger immutability listeners registered.

Usage:
    python3 scripts/init_db.py
    python3 scripts/init_db.py --reset
    python3 scripts/init_db.py --config deploy/registry.yaml
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the church registry database.")
    parser.add_argument("--config", help="path to a registry YAML config")
    parser.add_argument("--url", help="database URL (overrides the config)")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    args = parser.parse_args(argv)

    from sqlalchemy.exc import SQLAlchemyError

    from church_config import ConfigError, get_active_config
    from church_config.bridges import engine_kwargs
    from church_kernel.db.engine import create_tables, drop_tables, init_engine_from_url
    from church_kernel.exceptions import PersistenceError
    from church_kernel.logging_config import configure_logging

    try:
        config = get_active_config(args.config)
    except ConfigError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    configure_logging(level=config.logging.level)
    kwargs = engine_kwargs(config)
    if args.url:
        kwargs["database_url"] = args.url

    print(f"  [1/2] Connecting to {kwargs['database_url'].split('@')[-1]} ...")
    init_engine_from_url(**kwargs)

    print("  [2/2] " + ("Dropping and recreating schema..." if args.reset else "Creating schema..."))
    try:
        if args.reset:
            drop_tables()
        create_tables()
    except (PersistenceError, SQLAlchemyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print("  Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
