#!/usr/bin/env python3
"""Grant or revoke the admin flag on a user (idempotent).

Usage:
  python scripts/set_admin.py --username alice
  python scripts/set_admin.py --username alice --revoke
"""

import argparse
import os
import sys
from pathlib import Path

from sqlalchemy import select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.quoteboard.models import User
from scripts._db_utils import script_session


def set_admin(db_url: str, username: str, *, is_admin: bool = True) -> bool:
    """Returns False if the user does not exist."""
    with script_session(db_url) as s:
        user = s.execute(select(User).where(User.username == username.strip().lower())).scalar_one_or_none()
        if not user:
            return False
        user.is_admin = is_admin
    return True


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--username", required=True, help="Username to update")
    parser.add_argument("--revoke", action="store_true", help="Remove the admin flag instead of granting it")
    args = parser.parse_args()

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///quotes.db").strip()
    if not set_admin(db_url, args.username, is_admin=not args.revoke):
        print(f"User not found: {args.username}")
        sys.exit(1)
    state = "revoked from" if args.revoke else "granted to"
    print(f"Admin {state} {args.username}")


if __name__ == "__main__":
    main()
