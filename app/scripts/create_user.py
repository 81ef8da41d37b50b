"""
Create an account (e.g. the first Owner). Run from project root:
  python -m app.scripts.create_user USERNAME EMAIL PHONE PASSWORD [role]
Example:
  python -m app.scripts.create_user owner owner@example.com 2065550100 your-secure-password Owner
"""
import argparse
import logging
import sys

from app.core.database import SessionLocal
from app.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.services import accounts
from app.services.credentials import CredentialUpdater, HashingError
from app.services.roles import get_role_hierarchy

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)


def main() -> int:
    hierarchy = get_role_hierarchy()
    parser = argparse.ArgumentParser(description="Create an Auth² account (bypasses role checks).")
    parser.add_argument("username", help="Username (3-50 chars)")
    parser.add_argument("email", help="Email address")
    parser.add_argument("phone", help="Phone number (at least 10 digits)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument(
        "role",
        nargs="?",
        default="User",
        help=f"Role name or rank: {', '.join(hierarchy.names())}",
    )
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args()

    username = args.username.strip()
    if not 3 <= len(username) <= 50:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if not PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1
    rank = hierarchy.rank(args.role)
    if rank is None:
        print(f"Unknown role '{args.role}'.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        accounts.create_account(
            db,
            CredentialUpdater(db),
            args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            username=username,
            email=args.email.strip(),
            phone=args.phone.strip(),
            role=rank,
            status="active",
            email_verified=True,
        )
        print(f"Created user '{username}' with role '{hierarchy.name(rank)}'.")
        return 0
    except accounts.DuplicateAccountError as e:
        print(e.message, file=sys.stderr)
        return 1
    except HashingError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
