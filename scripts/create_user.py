import argparse
import asyncio
import getpass
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from registrar.auth import AuthenticationService
from registrar.config import load_settings, resolve_database_path
from registrar.database import Database
from registrar.errors import RegistrarError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a student account")
    parser.add_argument("username", help="Display name for the student")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("phone", help="Contact phone number")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to REGISTRAR_DB_PATH or data/registrar.sqlite3)",
    )
    return parser.parse_args()


def prompt_for_password() -> tuple[str, str]:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        return password, confirm
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password, confirm = prompt_for_password()

    settings = load_settings()
    if args.db_path:
        settings = replace(settings, database_path=resolve_database_path(args.db_path))

    database = Database(settings.database_path)
    database.initialize()
    auth = AuthenticationService(database)

    try:
        user = asyncio.run(auth.signup(args.username, args.email, args.phone, password, confirm))
    except RegistrarError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created student {user.id}: {user.username} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
