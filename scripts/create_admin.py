"""
Create (or update) an ADMIN account.

Self-registration only hands out CLIENT and PROVIDER accounts, so the first admin
is bootstrapped here.

Usage:
  python scripts/create_admin.py --email admin@eventura.com --password 'Secret123!'

This script is idempotent: running it again with the same email promotes the
existing user to ADMIN and reactivates it. The password is only reset with
--reset-password.
"""
import argparse
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from eventura.auth.security import get_password_hash
from eventura.db import Base, SessionLocal, engine
from eventura.models.models import User
from eventura.schemas.common import AccountStatus, UserRole


def ensure_admin(session, email: str, password: str, first_name: str, last_name: str, reset_password: bool = False) -> User:
    email = email.strip().lower()
    user = session.query(User).filter(User.email == email).first()
    if user:
        user.role = UserRole.ADMIN
        user.account_status = AccountStatus.ACTIVE
        if reset_password or not user.password_hash:
            user.password_hash = get_password_hash(password)
        session.add(user)
        return user
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=get_password_hash(password),
        role=UserRole.ADMIN,
        account_status=AccountStatus.ACTIVE,
    )
    session.add(user)
    session.flush()
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or promote an Eventura admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--first-name", default="Eventura")
    parser.add_argument("--last-name", default="Admin")
    parser.add_argument("--reset-password", action="store_true", help="Overwrite the password of an existing user")
    args = parser.parse_args()

    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        user = ensure_admin(session, args.email, args.password, args.first_name, args.last_name, args.reset_password)
        session.commit()
        print(f"Admin ready: {user.email} (id={user.id})")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
