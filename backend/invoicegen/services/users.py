from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from invoicegen.core.security import get_password_hash
from invoicegen.models.user import User, default_user_settings
from invoicegen.services.google_auth import GoogleAuthError, GoogleIdentity


logger = logging.getLogger(__name__)


class EmailAlreadyRegistered(ValueError):
    pass


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def create_local_user(db: Session, *, email: str, password: str, email_verified: bool = False) -> User:
    if get_user_by_email(db, email):
        raise EmailAlreadyRegistered("User with this email already exists")
    user = User(
        email=email.lower(),
        hashed_password=get_password_hash(password),
        email_verified=email_verified,
        settings=default_user_settings(),
    )
    db.add(user)
    db.flush()
    logger.info("user_registered", extra={"user_id": user.id})
    return user


def upsert_google_user(db: Session, identity: GoogleIdentity) -> User:
    """Find the account for a Google identity by email, creating it on first sign-in."""
    if not identity.email_verified:
        raise GoogleAuthError("Google has not verified this email address")
    user = get_user_by_email(db, identity.email)
    if user is None:
        user = User(
            email=identity.email,
            name=identity.name,
            image=identity.picture,
            google_id=identity.subject,
            email_verified=True,
            settings=default_user_settings(),
        )
        db.add(user)
        db.flush()
        logger.info("user_registered_google", extra={"user_id": user.id})
        return user

    if user.google_id and user.google_id != identity.subject:
        raise GoogleAuthError("Email is linked to a different Google account")
    if not user.google_id:
        user.google_id = identity.subject
        user.name = user.name or identity.name
        user.image = identity.picture or user.image
        user.email_verified = True
        db.add(user)
        db.flush()
        logger.info("user_linked_google", extra={"user_id": user.id})
    return user


def merge_user_settings(current: Optional[Mapping[str, Any]], patch: Mapping[str, Any]) -> dict:
    """Shallow-merge ``patch`` into ``current``; ``sender`` is merged per field.

    Both mappings use the stored camelCase keys (``logoUrl``, ``postalCode``).
    ``None`` values in ``patch`` never overwrite stored text.
    """
    merged = copy.deepcopy(dict(current)) if current else default_user_settings()
    sender = dict(merged.get("sender") or {})
    for key, value in patch.items():
        if key == "sender":
            sender.update({field: text for field, text in (value or {}).items() if text is not None})
        elif value is not None:
            merged[key] = value
    merged["sender"] = sender
    return merged


def update_user_settings(db: Session, *, user: User, patch: Mapping[str, Any]) -> dict:
    # Reassign rather than mutate so the JSON column is flagged dirty.
    user.settings = merge_user_settings(user.settings, patch)
    db.add(user)
    db.flush()
    return user.settings
