from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from invoicegen.core.settings import Settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PURPOSE_ACCESS = "access"
PURPOSE_EMAIL_VERIFY = "email_verify"
PURPOSE_PASSWORD_RESET = "password_reset"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    # Google-only accounts have no password to compare against.
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _expiry_delta(config: Settings, expires_delta: Optional[timedelta]) -> timedelta:
    if expires_delta is not None:
        return expires_delta
    minutes = config.access_token_expire_minutes
    if minutes <= 0:
        minutes = 60
    return timedelta(minutes=minutes)


def create_access_token(
    data: Dict[str, Any],
    *,
    config: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + _expiry_delta(config, expires_delta)
    to_encode.setdefault("iat", now)
    to_encode.setdefault("purpose", PURPOSE_ACCESS)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.jwt_secret, algorithm=config.algorithm)


def create_purpose_token(subject: str, purpose: str, expires_delta: timedelta, *, config: Settings) -> str:
    return create_access_token({"sub": subject, "purpose": purpose}, config=config, expires_delta=expires_delta)


def create_email_verification_token(user_id: str, *, config: Settings) -> str:
    return create_purpose_token(
        user_id,
        PURPOSE_EMAIL_VERIFY,
        timedelta(hours=config.email_token_expire_hours),
        config=config,
    )


def create_password_reset_token(user_id: str, *, config: Settings) -> str:
    return create_purpose_token(
        user_id,
        PURPOSE_PASSWORD_RESET,
        timedelta(minutes=config.reset_token_expire_minutes),
        config=config,
    )


def decode_token(token: str, *, config: Settings) -> Dict[str, Any]:
    return jwt.decode(token, config.jwt_secret, algorithms=[config.algorithm])


def decode_purpose_token(token: str, purpose: str, *, config: Settings) -> str:
    """Return the subject of ``token``, rejecting tokens minted for another purpose."""
    payload = decode_token(token, config=config)
    if payload.get("purpose") != purpose:
        raise JWTError(f"Token purpose mismatch: expected {purpose}")
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token has no subject")
    return str(subject)
