from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from invoicegen.schemas.base import ORMModel, PatchModel


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8


def normalize_email(value: str) -> str:
    value = (value or "").strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value.lower()


def validate_password_length(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return value


class Address(ORMModel):
    name: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = ""


class AddressPatch(PatchModel):
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class UserSettings(ORMModel):
    sender: Address = Field(default_factory=Address)
    logo_url: str = ""


class UserSettingsPatch(PatchModel):
    sender: Optional[AddressPatch] = None
    logo_url: Optional[str] = None


class UserSettingsUpdate(ORMModel):
    settings: UserSettingsPatch


class UserCreate(ORMModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password_length(cls, value: str) -> str:
        return validate_password_length(value)


class UserRead(ORMModel):
    id: str
    email: str
    email_verified: bool
    name: Optional[str] = None
    image: Optional[str] = None
    settings: UserSettings = Field(default_factory=UserSettings)
    created_at: datetime
