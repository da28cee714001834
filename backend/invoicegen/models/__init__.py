"""Import all models so SQLAlchemy metadata is fully registered."""

from invoicegen.db.base import Base

from invoicegen.models.invoice import Invoice, InvoiceItem
from invoicegen.models.user import User

__all__ = [
    "Base",
    "Invoice",
    "InvoiceItem",
    "User",
]
