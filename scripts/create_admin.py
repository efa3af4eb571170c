"""
Create (or promote) an admin user with a password from the environment.
Usage: ADMIN_PASSWORD=your-secure-password python scripts/create_admin.py
"""
import os
import secrets

from sqlmodel import Session, select

from inkwell.core import security
from inkwell.db import create_db_and_tables, engine
from inkwell.models.user import User


def create_admin():
    admin_email = os.getenv("ADMIN_EMAIL", "admin@inkwell.dev").lower()
    admin_username = os.getenv("ADMIN_USERNAME", "admin")
    admin_password = os.getenv("ADMIN_PASSWORD")

    if not admin_password:
        # Generate secure random password if not provided
        admin_password = secrets.token_urlsafe(32)
        print("No ADMIN_PASSWORD env var set. Generated secure password:")
        print(f"  {admin_password}")
        print("\nSave this password securely - it will not be shown again!")
        print("Or set ADMIN_PASSWORD environment variable before running.\n")

    create_db_and_tables()
    with Session(engine) as session:
        user = session.exec(select(User).where(User.email == admin_email)).first()

        if not user:
            print(f"Creating admin user: {admin_email}")
            user = User(
                username=admin_username,
                email=admin_email,
                hashed_password=security.get_password_hash(admin_password),
                role="admin",
                is_active=True,
            )
            session.add(user)
            session.commit()
            print("Admin user created successfully.")
        elif not user.is_admin:
            user.role = "admin"
            session.add(user)
            session.commit()
            print(f"Promoted {admin_email} to admin.")
        else:
            print(f"Admin user {admin_email} already exists.")


if __name__ == "__main__":
    create_admin()
