"""Grant or revoke studio admin access for a teacher account.

Usage:
  Run from the project root with the virtual environment activated, e.g.:
    python scripts/set_admin.py kim@example.com
    python scripts/set_admin.py kim@example.com --revoke
"""

from typing import Optional
import argparse
import sys
import os

# Ensure project root is on the import path when running as a script
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from db import SessionLocal
from models import User, UserRole


def set_admin_flag(db, email: str, is_admin: bool) -> Optional[User]:
    user: Optional[User] = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        print(f"User with email {email} not found.")
        return None

    if user.role != UserRole.TEACHER:
        print(f"User {user.id} is a {user.role.value}; only teachers can be administrators.")
        return None

    if user.is_admin == is_admin:
        print(f"User {user.id} already has is_admin={is_admin}.")
        return user

    user.is_admin = is_admin
    db.commit()
    db.refresh(user)
    print(f"{'Granted' if is_admin else 'Revoked'} admin access for {user.name} (id {user.id}).")
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Grant or revoke admin access for a teacher")
    parser.add_argument("email", help="Teacher login email")
    parser.add_argument("--revoke", action="store_true", help="Remove admin access instead of granting it")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        user = set_admin_flag(db, args.email, is_admin=not args.revoke)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    return 0 if user is not None else 1


if __name__ == "__main__":
    sys.exit(main())
