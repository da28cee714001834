from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import Date, Float, ForeignKey, Integer, JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoicegen.db.base import Base, IDMixin, TimestampMixin, UUIDMixin
from invoicegen.models.user import empty_address


class Invoice(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "invoices"

    owner_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    sender: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=empty_address,
    )
    recipient: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=empty_address,
    )

    currency: Mapped[str] = mapped_column(String(10), default="USD", nullable=False)
    tax_rate: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    # Derived from items and tax_rate; only services.invoices writes these.
    subtotal: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    owner: Mapped["User"] = relationship(back_populates="invoices")
    items: Mapped[List["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by=lambda: InvoiceItem.order_index.asc(),
    )

    @property
    def tax_amount(self) -> float:
        return self.total - self.subtotal


class InvoiceItem(IDMixin, TimestampMixin, Base):
    __tablename__ = "invoice_items"

    invoice_id: Mapped[str] = mapped_column(ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    quantity: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    invoice: Mapped[Invoice] = relationship(back_populates="items")
