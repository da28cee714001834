from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.orm import Session

from invoicegen.core.deps import (
    GoogleVerifier,
    get_app_settings,
    get_current_user,
    get_google_verifier,
    log_auth_event,
)
from invoicegen.core.security import (
    PURPOSE_EMAIL_VERIFY,
    PURPOSE_PASSWORD_RESET,
    create_access_token,
    create_email_verification_token,
    create_password_reset_token,
    decode_purpose_token,
    get_password_hash,
    verify_password,
)
from invoicegen.core.settings import Settings
from invoicegen.db.session import get_db
from invoicegen.models.user import User
from invoicegen.schemas.auth import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    GoogleLoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
)
from invoicegen.schemas.user import UserCreate, UserRead
from invoicegen.services.auth_emails import build_reset_link, send_password_reset_email, send_verification_email
from invoicegen.services.email import email_enabled
from invoicegen.services.google_auth import GoogleAuthError
from invoicegen.services.users import EmailAlreadyRegistered, create_local_user, get_user_by_email, upsert_google_user

router = APIRouter(prefix="/api/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If your email is registered, you will receive a password reset link"


def _build_login_response(user: User, app_settings: Settings) -> LoginResponse:
    token = create_access_token({"sub": user.id}, config=app_settings)
    return LoginResponse(access_token=token, user=UserRead.model_validate(user))


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register_user(
    request: Request,
    user_in: UserCreate,
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_app_settings),
) -> UserRead:
    try:
        user = create_local_user(
            db,
            email=user_in.email,
            password=user_in.password,
            email_verified=app_settings.auto_verify_email,
        )
    except EmailAlreadyRegistered as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    db.commit()
    db.refresh(user)

    if not user.email_verified:
        token = create_email_verification_token(user.id, config=app_settings)
        send_verification_email(app_settings, user=user, token=token)
    log_auth_event("user_registered", request=request, extra={"user_id": user.id})
    return UserRead.model_validate(user)


@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_app_settings),
) -> LoginResponse:
    email = form_data.username.strip().lower()
    user = get_user_by_email(db, email)
    if not user or not verify_password(form_data.password, user.hashed_password):
        log_auth_event("login_failed", request=request, extra={"email": email})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    log_auth_event("login", request=request, extra={"user_id": user.id})
    return _build_login_response(user, app_settings)


@router.post("/google", response_model=LoginResponse)
def google_login(
    request: Request,
    payload: GoogleLoginRequest,
    db: Session = Depends(get_db),
    verify: GoogleVerifier = Depends(get_google_verifier),
    app_settings: Settings = Depends(get_app_settings),
) -> LoginResponse:
    try:
        identity = verify(payload.id_token)
        user = upsert_google_user(db, identity)
    except GoogleAuthError as exc:
        log_auth_event("google_login_failed", request=request, extra={"reason": str(exc)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Google token") from exc

    db.commit()
    db.refresh(user)
    log_auth_event("google_login", request=request, extra={"user_id": user.id})
    return _build_login_response(user, app_settings)


@router.get("/verify-email/{token}", response_model=MessageResponse)
def verify_email(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_app_settings),
) -> MessageResponse:
    try:
        user_id = decode_purpose_token(token, PURPOSE_EMAIL_VERIFY, config=app_settings)
    except JWTError as exc:
        log_auth_event("verify_email_invalid_token", request=request)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token") from exc

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already verified")

    user.email_verified = True
    db.add(user)
    db.commit()
    log_auth_event("email_verified", request=request, extra={"user_id": user.id})
    return MessageResponse(message="Email verified successfully")


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_app_settings),
) -> ForgotPasswordResponse:
    user = get_user_by_email(db, payload.email)
    # Same answer whether or not the account exists.
    if not user:
        return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE)

    token = create_password_reset_token(user.id, config=app_settings)
    send_password_reset_email(app_settings, user=user, token=token)
    log_auth_event("password_reset_requested", request=request, extra={"user_id": user.id})

    reset_link = None
    if not app_settings.is_production and not email_enabled(app_settings):
        reset_link = build_reset_link(app_settings, token)
    return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE, reset_link=reset_link)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: Request,
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db),
    app_settings: Settings = Depends(get_app_settings),
) -> MessageResponse:
    try:
        user_id = decode_purpose_token(payload.token, PURPOSE_PASSWORD_RESET, config=app_settings)
    except JWTError as exc:
        log_auth_event("password_reset_invalid_token", request=request)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token") from exc

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.hashed_password = get_password_hash(payload.password)
    db.add(user)
    db.commit()
    log_auth_event("password_reset", request=request, extra={"user_id": user.id})
    return MessageResponse(message="Password updated successfully")


@router.get("/profile", response_model=UserRead)
def get_profile(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(current_user)
