#!/usr/bin/env python3
"""Snapline CLI - management utility for the Snapline deployment service."""

import argparse
import asyncio
import sys

from snapline.settings import settings
from snapline.utils.db_manager import db_manager
from snapline.utils.logger import logger


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the Snapline server."""
    import uvicorn

    host = host or settings.host or "127.0.0.1"
    port = port or settings.port or 8000

    logger.info(f"Starting Snapline server at http://{host}:{port}")

    uvicorn.run(
        "snapline.api.app:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level="info" if settings.debug else "warning",
    )


async def init_database() -> None:
    """Create all database tables."""
    logger.info("Initializing database...")
    await db_manager.create_db_and_tables_async()
    await db_manager.close()
    logger.info("Database initialized successfully")


async def create_user(email: str, name: str | None) -> str:
    """Create a user, or reuse an existing one, and return a bearer token for it."""
    from snapline.api.security import create_access_token
    from snapline.models import User
    from snapline.repositories import UserRepository

    async with db_manager.get_async_session_context() as session:
        repo = UserRepository(session)
        user = await repo.get_by_email(email)
        if user is None:
            user = await repo.create(User(email=email, name=name))
            logger.info(f"Created user {user.email} ({user.id})")
    await db_manager.close()
    return create_access_token(user.id).access_token


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="snapline", description="Snapline - snapshot deployment pipelines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run the API server")
    run_parser.add_argument(
        "--host", type=str, default=None, help="Host to bind to (default: 127.0.0.1)"
    )
    run_parser.add_argument(
        "--port", type=int, default=None, help="Port to bind to (default: 8000)"
    )

    # db command
    db_parser = subparsers.add_parser("db", help="Database management")
    db_subparsers = db_parser.add_subparsers(dest="db_command")
    db_subparsers.add_parser("init", help="Initialize database with tables")

    # user command
    user_parser = subparsers.add_parser("user", help="User management")
    user_subparsers = user_parser.add_subparsers(dest="user_command")
    user_create = user_subparsers.add_parser("create", help="Create a user and print a token")
    user_create.add_argument("--email", type=str, required=True, help="User email")
    user_create.add_argument("--name", type=str, default=None, help="Display name")

    args = parser.parse_args()

    if args.command == "run":
        run_server(args.host, args.port)
    elif args.command == "db":
        if args.db_command == "init":
            asyncio.run(init_database())
        else:
            db_parser.print_help()
    elif args.command == "user":
        if args.user_command == "create":
            print(asyncio.run(create_user(args.email, args.name)))
        else:
            user_parser.print_help()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
