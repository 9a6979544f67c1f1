import logging
from app.core.config import settings
from app.core.exceptions import UserExistsError
from app.database import SessionLocal
from app.models.user import User, UserRole
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

def init_system_data():
    """
    Creates the bootstrap ADMIN (with its leave ledger) from ADMIN_EMAIL /
    ADMIN_PASSWORD when both are configured and the account does not exist.
    """
    if not (settings.admin_email and settings.admin_password):
        logger.info("System initialization check: no bootstrap admin configured.")
        return

    db = SessionLocal()
    try:
        existing_admin = db.query(User).filter(User.email == settings.admin_email).first()
        if existing_admin:
            logger.info(f"System initialization check: admin {settings.admin_email} already present.")
            return

        UserService(db).register(
            name="Administrator",
            email=settings.admin_email,
            password=settings.admin_password,
            role=UserRole.ADMIN,
        )
        logger.info(f"✓ Created bootstrap admin: {settings.admin_email}")
    except UserExistsError:
        # Another worker created it between our check and insert
        logger.info(f"System initialization check: admin {settings.admin_email} already present.")
    finally:
        db.close()
