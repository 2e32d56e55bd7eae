from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import client_ip, get_current_user
from dental_ledger.models.user import User
from dental_ledger.schemas.invoice import InvoiceCreate, InvoiceOut
from dental_ledger.services import invoicing

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    invoice = invoicing.create_invoice(
        db,
        patient_id=payload.patient_id,
        doctor_id=payload.doctor_id,
        item_ids=payload.item_ids,
        discount_minor=payload.discount_minor,
        notes=payload.notes,
        due_date=payload.due_date,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(invoice)
    return invoice


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return invoicing.get_invoice(db, invoice_id)
