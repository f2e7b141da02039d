"""Security utilities for Centro Lúdico: password hashing, JWT tokens and one-time tokens.

Access tokens carry subject and expiration claims. Signed resource tokens reuse
the same key with a ``purpose`` claim so they cannot be replayed as access tokens.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from backend.app.core.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_PURPOSE = "access"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, expires_minutes: Optional[int] = None, role: Optional[str] = None) -> str:
    settings = get_settings()
    user_identifier = (
        user_id.get("sub") if isinstance(user_id, dict) and "sub" in user_id else user_id
    )
    expire_delta = timedelta(minutes=expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expire_delta
    payload = {"sub": str(user_identifier), "exp": expire}
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Invalid token") from exc
    if payload.get("purpose", ACCESS_PURPOSE) != ACCESS_PURPOSE:
        raise ValueError("Invalid token")
    return payload


def create_signed_token(purpose: str, claims: Dict[str, Any], expires_seconds: int) -> str:
    settings = get_settings()
    payload = dict(claims)
    payload["purpose"] = purpose
    payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_seconds)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_signed_token(token: str, purpose: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Invalid token") from exc
    if payload.get("purpose") != purpose:
        raise ValueError("Invalid token")
    return payload


def generate_one_time_token() -> tuple[str, str]:
    """Return (raw token for the user, sha256 digest for storage)."""
    raw = secrets.token_hex(32)
    return raw, hash_one_time_token(raw)


def hash_one_time_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
