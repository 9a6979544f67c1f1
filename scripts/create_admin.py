import argparse
import getpass
import logging
import os
import sys
from sqlalchemy.orm import Session

# Ensure we can import app modules
sys.path.append(os.getcwd())

from app.core.exceptions import UserExistsError
from app.database import SessionLocal, init_db
from app.models.user import UserRole
from app.services.user_service import UserService

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

def create_admin_user(name: str, email: str, password: str) -> int:
    init_db()
    db: Session = SessionLocal()
    try:
        user = UserService(db).register(name=name, email=email, password=password, role=UserRole.ADMIN)
    except UserExistsError:
        logger.warning(f"User '{email}' already exists.")
        return 1
    finally:
        db.close()

    logger.info(f"Admin user {user.id} created with a default leave ledger. You can now login as {email}.")
    return 0

def main() -> int:
    parser = argparse.ArgumentParser(description="Create an ADMIN account able to approve leave requests.")
    parser.add_argument("email")
    parser.add_argument("--name", default="Administrator")
    args = parser.parse_args()

    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password: ")
    return create_admin_user(args.name, args.email, password)

if __name__ == "__main__":
    sys.exit(main())
