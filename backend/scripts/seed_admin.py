#!/usr/bin/env python3
"""
Admin User Seed Script
Creates an administrator for the MBG Watch review console, or promotes an
existing account.

Usage:
    python -m scripts.seed_admin <email> <username> <password>

Example:
    python -m scripts.seed_admin admin@mbgwatch.id admin securepassword123
"""
import sys
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mbg_watch.auth import hash_password
from mbg_watch.database import SessionLocal, init_db
from mbg_watch.models.db_models import UserDB, UserRole


def create_admin_user(db: Session, email: str, username: str, password: str) -> bool:
    """Create an admin user, or promote the account that owns the email."""
    existing = db.query(UserDB).filter(
        (UserDB.email == email) | (UserDB.username == username)
    ).first()

    if existing:
        if existing.email != email:
            print(f"Error: Username '{username}' already exists.")
            return False
        if existing.role == UserRole.ADMIN.value:
            print(f"'{email}' is already an admin.")
            return True
        existing.role = UserRole.ADMIN.value
        db.commit()
        print(f"Upgraded existing user '{email}' to admin role.")
        return True

    db.add(UserDB(
        id=str(uuid4()),
        email=email,
        username=username,
        password_hash=hash_password(password),
        role=UserRole.ADMIN.value,
    ))
    db.commit()

    print("Admin user created successfully!")
    print(f"  Email: {email}")
    print(f"  Username: {username}")
    return True


def main():
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)

    email, username, password = sys.argv[1:4]
    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        ok = create_admin_user(db, email, username, password)
    except SQLAlchemyError as e:
        db.rollback()
        print(f"Error creating admin user: {e}")
        ok = False
    finally:
        db.close()
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
