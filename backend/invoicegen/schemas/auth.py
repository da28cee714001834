from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from invoicegen.schemas.base import ORMModel
from invoicegen.schemas.user import UserRead, normalize_email, validate_password_length


class Token(ORMModel):
    # OAuth2 clients expect the snake_case token fields.
    model_config = ConfigDict(alias_generator=None)

    access_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    user: UserRead


class GoogleLoginRequest(ORMModel):
    id_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(ORMModel):
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class ForgotPasswordResponse(ORMModel):
    message: str
    # Only populated outside production, where no email is actually delivered.
    reset_link: Optional[str] = None


class ResetPasswordRequest(ORMModel):
    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def check_password_length(cls, value: str) -> str:
        return validate_password_length(value)


class MessageResponse(ORMModel):
    success: bool = True
    message: str
