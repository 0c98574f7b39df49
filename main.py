"""Command-line interface for the student course registration service."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from registrar.catalog import seed_courses
from registrar.config import Settings, load_settings
from registrar.database import Database

logger = logging.getLogger("registrar.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Student course registration utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the registration database tables")
    subparsers.add_parser("seed", help="Insert the default courses if the catalog is empty")
    subparsers.add_parser("list-courses", help="Print the course catalog with seat counts")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Bind address (default: REGISTRAR_HOST or 0.0.0.0)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="HTTP port (default: PORT or 3000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "seed", "list-courses"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, settings: Settings, database: Database, host: str | None, port: int | None) -> None:
    from registrar.service import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Server running at http://%s:%s", bind_host, bind_port)

    app = create_app(settings=settings, database=database)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


def _list_courses(database: Database) -> None:
    courses = database.list_courses()
    if not courses:
        print("The course catalog is empty.")
        return
    print(f"{'Code':<10}  {'Title':<24}  {'Instructor':<16}  {'Schedule':<16}  Seats")
    print("-" * 80)
    for course in courses:
        print(
            f"{course.code:<10}  {course.title:<24}  {course.instructor:<16}  "
            f"{course.schedule:<16}  {course.enrolled}/{course.capacity}"
        )


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings()
    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(settings=settings, database=database, host=args.host, port=args.port)
    elif args.command == "seed":
        created = seed_courses(database)
        if created:
            print(f"Seeded {len(created)} course(s).")
        else:
            print("Catalog already populated; nothing to seed.")
    elif args.command == "list-courses":
        _list_courses(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
