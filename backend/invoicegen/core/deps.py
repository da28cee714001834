from __future__ import annotations

import json
import logging
from functools import partial
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from invoicegen.core.security import PURPOSE_ACCESS, decode_token
from invoicegen.core.settings import Settings
from invoicegen.db.session import get_db
from invoicegen.models.user import User
from invoicegen.services.google_auth import GoogleIdentity, verify_google_id_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
logger = logging.getLogger("security")


def log_auth_event(event: str, *, request: Request, extra: Optional[dict] = None) -> None:
    payload = {
        "event": event,
        "request_id": request.headers.get("x-request-id"),
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else None,
    }
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    request: Request,
    token: str = Security(oauth2_scheme),
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_app_settings),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token, config=app_settings)
    except JWTError:
        log_auth_event("token_invalid", request=request)
        raise credentials_exception

    if payload.get("purpose") != PURPOSE_ACCESS:
        log_auth_event("token_wrong_purpose", request=request, extra={"purpose": payload.get("purpose")})
        raise credentials_exception
    user_id = payload.get("sub")
    if not user_id:
        log_auth_event("token_missing_sub", request=request)
        raise credentials_exception

    user = db.get(User, str(user_id))
    if not user:
        log_auth_event("user_missing", request=request, extra={"user_id": user_id})
        raise credentials_exception
    return user


def get_verified_user(
    request: Request,
    current_user: User = Depends(get_current_user),
    app_settings: Settings = Depends(get_app_settings),
) -> User:
    """Current user, refused with 403 when verification is required and missing."""
    if app_settings.require_verified_email and not current_user.email_verified:
        log_auth_event("unverified_email_blocked", request=request, extra={"user_id": current_user.id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email verification required")
    return current_user


GoogleVerifier = Callable[[str], GoogleIdentity]


def get_google_verifier(app_settings: Settings = Depends(get_app_settings)) -> GoogleVerifier:
    return partial(verify_google_id_token, client_id=app_settings.google_client_id)
