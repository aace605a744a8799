#!/usr/bin/env python3
"""
AuthGate -- operator command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py create-account --email a@example.com

create-account prompts for the password twice (never pass it on the command
line -- it would land in shell history). It goes through the same validation
as the signup endpoint.

Configuration comes from the environment / .env (see core/config.py).
"""

import argparse
import getpass
import sys

from auth.store import AccountStore, AccountValidationError
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_account(args: argparse.Namespace) -> int:
    settings = get_settings()
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")
    store = AccountStore(settings.database_url, password_min_length=settings.password_min_length)
    try:
        account_id = store.create_account(args.email, password, confirm)
    except AccountValidationError as e:
        print(f"  [!] {e}")
        return 1
    finally:
        store.close()
    print(f"  Created account {account_id} for {args.email.strip().lower()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="authgate", description="AuthGate account and session service.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development).")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-account", help="Create an account from the terminal.")
    create.add_argument("--email", required=True)
    create.set_defaults(func=_create_account)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
