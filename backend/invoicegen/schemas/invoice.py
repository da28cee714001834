from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, model_validator

from invoicegen.schemas.base import ORMModel
from invoicegen.schemas.user import Address


class InvoiceItemBase(ORMModel):
    description: str = Field(default="", max_length=255)
    quantity: float = 1.0
    unit_price: float = 0.0


class InvoiceItemCreate(InvoiceItemBase):
    pass


class InvoiceItemRead(InvoiceItemBase):
    id: int


class PartyAddress(Address):
    @model_validator(mode="after")
    def require_name(self) -> "PartyAddress":
        if not self.name.strip():
            raise ValueError("name is required")
        return self


class InvoiceCreate(ORMModel):
    invoice_number: Optional[str] = Field(default=None, max_length=100)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    logo_url: Optional[str] = Field(default=None, max_length=500)
    sender: Optional[PartyAddress] = None
    recipient: PartyAddress
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    currency: str = Field(default="USD", min_length=1, max_length=10)
    tax_rate: float = Field(default=0.0, ge=0)
    # Accepted so older clients can keep posting them; always recomputed.
    subtotal: Optional[float] = None
    total: Optional[float] = None


_NON_NULLABLE_UPDATE_FIELDS = ("invoice_date", "sender", "recipient", "items", "currency", "tax_rate")


class InvoiceUpdate(ORMModel):
    invoice_number: Optional[str] = Field(default=None, max_length=100)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    logo_url: Optional[str] = Field(default=None, max_length=500)
    sender: Optional[PartyAddress] = None
    recipient: Optional[PartyAddress] = None
    items: Optional[List[InvoiceItemCreate]] = Field(default=None, min_length=1)
    currency: Optional[str] = Field(default=None, min_length=1, max_length=10)
    tax_rate: Optional[float] = Field(default=None, ge=0)
    subtotal: Optional[float] = None
    total: Optional[float] = None

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "InvoiceUpdate":
        for field in _NON_NULLABLE_UPDATE_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class InvoiceRead(ORMModel):
    id: str
    invoice_number: Optional[str] = None
    invoice_date: date
    due_date: Optional[date] = None
    logo_url: Optional[str] = None
    sender: Address
    recipient: Address
    items: List[InvoiceItemRead]
    currency: str
    tax_rate: float
    subtotal: float
    tax_amount: float
    total: float
    owner_id: str
    created_at: datetime
    updated_at: datetime


class Pagination(ORMModel):
    total: int
    page: int
    limit: int
    total_pages: int


class InvoiceListResponse(ORMModel):
    invoices: List[InvoiceRead]
    pagination: Pagination


class InvoiceShareResponse(ORMModel):
    id: str
    url: str
