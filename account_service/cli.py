# account_service/cli.py
import argparse
from typing import List, Optional

import uvicorn

from .config import load_settings
from .database import Database
from .log import configure_logging


def serve(args) -> int:
    uvicorn.run(
        "account_service.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


def init_db(args) -> int:
    settings = load_settings()
    configure_logging(settings.log_level)
    database = Database(settings.database_url).connect()
    try:
        database.create_all()
    finally:
        database.close()
    print(f"Tables ready in {settings.database_url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="account-service")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_parser = sub.add_parser("serve", help="run the HTTP API")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.set_defaults(func=serve)

    init_parser = sub.add_parser("init-db", help="create the account tables")
    init_parser.set_defaults(func=init_db)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
