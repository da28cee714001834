from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from invoicegen.core.deps import get_app_settings, get_verified_user
from invoicegen.core.settings import Settings
from invoicegen.db.session import get_db
from invoicegen.models.invoice import Invoice
from invoicegen.models.user import User
from invoicegen.schemas.auth import MessageResponse
from invoicegen.schemas.invoice import (
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceRead,
    InvoiceShareResponse,
    InvoiceUpdate,
    Pagination,
)
from invoicegen.services.invoice_pdf import invoice_filename, render_invoice_pdf
from invoicegen.services.invoices import (
    InvoiceNotFound,
    create_invoice,
    delete_invoice,
    get_owned_invoice,
    list_owned_invoices,
    total_pages,
    update_invoice,
)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])
logger = logging.getLogger(__name__)


def _get_invoice_or_404(db: Session, *, user: User, invoice_id: str) -> Invoice:
    try:
        return get_owned_invoice(db, owner_id=user.id, invoice_id=invoice_id)
    except InvoiceNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found") from exc


@router.get("", response_model=InvoiceListResponse)
def list_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
) -> InvoiceListResponse:
    invoices, total = list_owned_invoices(db, owner_id=current_user.id, page=page, limit=limit)
    return InvoiceListResponse(
        invoices=[InvoiceRead.model_validate(invoice) for invoice in invoices],
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=total_pages(total, limit)),
    )


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice_route(
    invoice_in: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
) -> InvoiceRead:
    invoice = create_invoice(db, owner=current_user, payload=invoice_in.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(invoice)
    return InvoiceRead.model_validate(invoice)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
) -> InvoiceRead:
    return InvoiceRead.model_validate(_get_invoice_or_404(db, user=current_user, invoice_id=invoice_id))


@router.put("/{invoice_id}", response_model=InvoiceRead)
@router.patch("/{invoice_id}", response_model=InvoiceRead)
def update_invoice_route(
    invoice_id: str,
    invoice_update: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
) -> InvoiceRead:
    invoice = _get_invoice_or_404(db, user=current_user, invoice_id=invoice_id)
    invoice = update_invoice(db, invoice=invoice, changes=invoice_update.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(invoice)
    return InvoiceRead.model_validate(invoice)


@router.delete("/{invoice_id}", response_model=MessageResponse)
def delete_invoice_route(
    invoice_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
) -> MessageResponse:
    invoice = _get_invoice_or_404(db, user=current_user, invoice_id=invoice_id)
    delete_invoice(db, invoice=invoice)
    db.commit()
    return MessageResponse(message="Invoice deleted successfully")


@router.get("/{invoice_id}/share", response_model=InvoiceShareResponse)
def share_invoice(
    invoice_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
    app_settings: Settings = Depends(get_app_settings),
) -> InvoiceShareResponse:
    invoice = _get_invoice_or_404(db, user=current_user, invoice_id=invoice_id)
    url = f"{app_settings.app_base_url.rstrip('/')}/invoice/{invoice.id}"
    return InvoiceShareResponse(id=invoice.id, url=url)


@router.get("/{invoice_id}/pdf")
def get_invoice_pdf(
    invoice_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_verified_user),
) -> Response:
    invoice = _get_invoice_or_404(db, user=current_user, invoice_id=invoice_id)
    content = render_invoice_pdf(invoice)
    logger.info("invoice_pdf_rendered", extra={"invoice_id": invoice.id, "user_id": current_user.id})
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice_filename(invoice)}"},
    )
