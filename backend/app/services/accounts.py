"""Registration, login and password lifecycle."""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.security import (
    generate_one_time_token,
    get_password_hash,
    hash_one_time_token,
    verify_password,
)
from backend.app.core.settings import get_settings
from backend.app.core.time import ensure_utc, utc_now
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.schemas.user import UserCreate, UserProfileUpdate
from backend.app.services.email_service import EmailDeliveryError, EmailService

logger = logging.getLogger(__name__)

PASSWORD_RESET_TTL = timedelta(hours=1)
RESET_REQUESTED_MESSAGE = "If the email is registered, a reset link has been sent"


def register_parent(db: Session, payload: UserCreate) -> User:
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    user = User(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        role=UserRole.PARENT.value,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.hashed_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is inactive")
    if not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    user.last_login = utc_now()
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not user.hashed_password or not verify_password(current_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.hashed_password = get_password_hash(new_password)
    user.must_change_password = False
    db.commit()


def update_profile(db: Session, user: User, payload: UserProfileUpdate) -> User:
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in {"first_name", "last_name"}:
            continue
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def request_password_reset(db: Session, email: str, email_service: EmailService) -> Optional[str]:
    """Store a hashed reset token and email the raw one. Returns the raw token, or None for unknown emails."""
    user = db.query(User).filter(User.email == email, User.is_active.is_(True)).first()
    if not user:
        logger.info("Password reset requested for unknown email")
        return None

    raw_token, token_hash = generate_one_time_token()
    user.reset_password_token = token_hash
    user.reset_password_expires = utc_now() + PASSWORD_RESET_TTL
    db.commit()

    try:
        email_service.send_password_reset(user.email, user.first_name, raw_token)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Could not send reset email: {exc}") from exc
    return raw_token


def reset_password(db: Session, token: str, new_password: str) -> User:
    user = db.query(User).filter(User.reset_password_token == hash_one_time_token(token)).first()
    expires = ensure_utc(user.reset_password_expires) if user else None
    if not user or expires is None or expires < utc_now():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")
    user.hashed_password = get_password_hash(new_password)
    user.reset_password_token = None
    user.reset_password_expires = None
    user.must_change_password = False
    user.email_verified = True
    db.commit()
    db.refresh(user)
    return user


def expose_reset_token() -> bool:
    return not get_settings().is_production
