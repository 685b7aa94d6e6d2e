#!/usr/bin/env python3
"""
WinkLink -- device registration and session login service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py init-db
  python main.py lookup SN12345678

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Token signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the device store. Defaults to devices/winklink.db.
"""

import argparse
import sys

from core.config import get_settings
from core.errors import WinkLinkError
from devices.registration import lookup_device
from devices.store import DeviceStore


def _open_store() -> DeviceStore:
    settings = get_settings()
    return DeviceStore(settings.database_url, transaction_timeout=settings.transaction_timeout_seconds)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the users table (idempotent) and report how many devices exist."""
    store = _open_store()
    try:
        print(f"  Device store ready ({store.count_users()} registered devices).")
    finally:
        store.close()
    return 0


def cmd_lookup(args: argparse.Namespace) -> int:
    store = _open_store()
    try:
        owner = lookup_device(store, args.serial_number)
    except WinkLinkError as e:
        print(f"  [!] {e.client_message}")
        return 1
    finally:
        store.close()
    print(f"  Owner:  {owner.device_owner}")
    print(f"  Device: {owner.device_name}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="winklink",
        description="WinkLink device registration service.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=cmd_serve)

    init_db = sub.add_parser("init-db", help="Create the device store schema")
    init_db.set_defaults(func=cmd_init_db)

    lookup = sub.add_parser("lookup", help="Show the owner of a device")
    lookup.add_argument("serial_number")
    lookup.set_defaults(func=cmd_lookup)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
