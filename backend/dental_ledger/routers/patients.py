from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

from dental_ledger.core.settings import settings
from dental_ledger.db.session import get_db
from dental_ledger.deps import client_ip, get_current_user
from dental_ledger.models.user import User
from dental_ledger.schemas.invoice import InvoiceSummaryOut
from dental_ledger.schemas.ledger import (
    BalanceOut,
    LedgerEntryOut,
    LedgerPaymentCreate,
    StatementOut,
)
from dental_ledger.schemas.patient import PatientCreate, PatientOut
from dental_ledger.services import invoicing, ledger
from dental_ledger.services.patients import create_patient, get_patient

router = APIRouter(prefix="/patients", tags=["patients"])


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def add_patient(
    payload: PatientCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    patient = create_patient(
        db,
        first_name=payload.first_name,
        last_name=payload.last_name,
        date_of_birth=payload.date_of_birth,
        phone=payload.phone,
        email=payload.email,
        notes=payload.notes,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(patient)
    return patient


@router.get("/{patient_id}", response_model=PatientOut)
def read_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return get_patient(db, patient_id)


@router.get("/{patient_id}/invoices", response_model=list[InvoiceSummaryOut])
def list_patient_invoices(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return invoicing.list_invoices(db, patient_id)


@router.get("/{patient_id}/ledger", response_model=StatementOut)
def get_patient_statement(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return StatementOut.model_validate(ledger.get_statement(db, patient_id))


@router.get("/{patient_id}/balance", response_model=BalanceOut)
def get_patient_balance(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    get_patient(db, patient_id)
    return BalanceOut(
        patient_id=patient_id,
        balance_minor=ledger.balance_of(db, patient_id),
        currency=settings.currency,
    )


@router.post(
    "/{patient_id}/payments", response_model=LedgerEntryOut, status_code=status.HTTP_201_CREATED
)
def add_patient_payment(
    patient_id: int,
    payload: LedgerPaymentCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    entry = ledger.record_payment(
        db,
        patient_id=patient_id,
        amount_minor=payload.amount_minor,
        method=payload.method,
        notes=payload.notes,
        reference=payload.reference,
        related_invoice_id=payload.related_invoice_id,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(entry)
    return entry
