"""
Script to create the first admin user.
Run this once after the first startup (tables and default roles must exist).
"""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from todo_api.core.database import SessionLocal, init_db
from todo_api.core.errors import ValidationError
from todo_api.services.seed import seed_default_data
from todo_api.services.users import get_user_by_email, register_user


def create_admin_user(email: str, password: str, full_name: str = "System Administrator"):
    """Create the first admin user."""
    init_db()
    db = SessionLocal()
    try:
        seed_default_data(db)

        if get_user_by_email(db, email):
            print(f"User with email {email} already exists!")
            return

        user = register_user(db, email, password, full_name, role_names=["Admin"])
        print(f"✅ Admin user created successfully!")
        print(f"   Email: {user.email}")
        print(f"   Roles: {', '.join(user.role_names)}")

    except ValidationError as e:
        db.rollback()
        print(f"❌ Error creating admin user: {e.message}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Create admin user')
    parser.add_argument('--email', default='admin@todo.com', help='Admin email')
    parser.add_argument('--password', required=True, help='Admin password')
    parser.add_argument('--name', default='System Administrator', help='Admin full name')

    args = parser.parse_args()
    create_admin_user(args.email, args.password, args.name)
