import logging
import os

from sqlalchemy.orm import Session

from backend.app.core.security import get_password_hash
from backend.app.models.enums import UserRole
from backend.app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_DEV_PASSWORD = "Secret123!"
DEFAULT_DEV_ADMIN = {
    "email": "admin@centroludico.test",
    "first_name": "Admin",
    "last_name": "Centro Lúdico",
}


def ensure_default_dev_admin(db: Session) -> None:
    """
    Create a default administrator for local development if none exists.
    Skips execution under pytest and in production.
    """
    if os.getenv("PYTEST_CURRENT_TEST") or os.getenv("APP_ENV") == "production":
        return

    if db.query(User).filter(User.role == UserRole.ADMIN.value).first():
        return

    db.add(
        User(
            hashed_password=get_password_hash(DEFAULT_DEV_PASSWORD),
            role=UserRole.ADMIN.value,
            is_active=True,
            **DEFAULT_DEV_ADMIN,
        )
    )
    db.commit()
    logger.info("Created default development admin %s", DEFAULT_DEV_ADMIN["email"])
