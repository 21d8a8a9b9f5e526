import logging
import os
import sys
from pathlib import Path

from sqlalchemy import select
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.quoteboard.models import User, UserGroup
from app.quoteboard.modules.groups.service import backfill_everyone, ensure_everyone_group
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the Everyone group and the admin user in an idempotent way, then make
    sure every existing user is enrolled in Everyone.
    Does NOT overwrite an existing admin user's password.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_display_name = (os.environ.get("ADMIN_DISPLAY_NAME") or "Admin").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///quotes.db").strip()

    with script_session(db_url) as s:
        everyone = ensure_everyone_group(s)

        user = s.execute(select(User).where(User.username == admin_username)).scalar_one_or_none()
        if not user:
            user = User(
                username=admin_username,
                password_hash=generate_password_hash(admin_password),
                display_name=admin_display_name,
                is_admin=True,
            )
            s.add(user)
            s.flush()
            print(f"Created admin user: {admin_username}")
        elif not user.is_admin:
            user.is_admin = True
            print(f"Promoted existing user to admin: {admin_username}")
        else:
            print(f"Admin user already exists: {admin_username}")

        if s.get(UserGroup, (user.id, everyone.id)) is None:
            s.add(UserGroup(user_id=user.id, group_id=everyone.id))
        s.commit()

        added, failed = backfill_everyone(s)
        print(f"Everyone backfill: added={added} failed={failed}")

    print("Initialized database (seed_only).")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
