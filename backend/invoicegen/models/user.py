from __future__ import annotations

from typing import List, Optional

from sqlalchemy import Boolean, JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoicegen.db.base import Base, TimestampMixin, UUIDMixin


def empty_address() -> dict:
    return {"name": "", "address": "", "city": "", "postalCode": "", "country": ""}


def default_user_settings() -> dict:
    return {"sender": empty_address(), "logoUrl": ""}


class User(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    # Null for accounts that only ever signed in with Google.
    hashed_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, server_default="false")
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    google_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True, index=True)
    settings: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=default_user_settings,
    )

    invoices: Mapped[List["Invoice"]] = relationship(
        back_populates="owner",
        cascade="all, delete-orphan",
    )
