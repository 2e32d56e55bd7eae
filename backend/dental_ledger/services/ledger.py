"""Append-only patient ledger and the balance derived from it.

The balance is never stored. ``balance_of`` aggregates the patient's entries
on every read, so it cannot drift from the transaction history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import InvalidAmount, InvalidPaymentMethod, NotFound
from dental_ledger.models.invoice import Invoice
from dental_ledger.models.ledger import (
    LedgerEntry,
    LedgerEntryCategory,
    LedgerEntryType,
    PaymentMethod,
)
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event
from dental_ledger.services.patients import get_patient, lock_patient

logger = logging.getLogger("dental_ledger.ledger")

METHOD_LABELS = {
    PaymentMethod.cash: "Cash",
    PaymentMethod.upi: "UPI",
    PaymentMethod.card: "Card",
    PaymentMethod.insurance: "Insurance",
}


@dataclass(frozen=True)
class Statement:
    patient_id: int
    entries: list[LedgerEntry]
    total_debits_minor: int
    total_credits_minor: int
    balance_minor: int


def append(
    db: Session,
    *,
    patient_id: int,
    entry_type: LedgerEntryType,
    category: LedgerEntryCategory,
    amount_minor: int,
    description: str,
    actor: User,
    entry_date: date | None = None,
    method: PaymentMethod | None = None,
    reference: str | None = None,
    note: str | None = None,
    related_invoice_id: int | None = None,
    related_item_id: int | None = None,
) -> LedgerEntry:
    """Append one entry. This is the only way entries are written."""
    if isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0:
        raise InvalidAmount(
            f"Ledger amount must be a positive integer (got {amount_minor!r})",
            entity_type="patient",
            entity_id=patient_id,
        )
    entry = LedgerEntry(
        patient_id=patient_id,
        entry_type=entry_type,
        category=category,
        amount_minor=amount_minor,
        description=description[:255],
        entry_date=entry_date or date.today(),
        method=method,
        reference=reference,
        note=note,
        related_invoice_id=related_invoice_id,
        related_item_id=related_item_id,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    db.add(entry)
    db.flush()
    logger.info(
        "Ledger %s %s of %s for patient %s (entry %s)",
        entry_type.value,
        category.value,
        amount_minor,
        patient_id,
        entry.id,
    )
    return entry


def _totals(db: Session, patient_id: int) -> tuple[int, int]:
    debit_sum = func.coalesce(
        func.sum(
            case((LedgerEntry.entry_type == LedgerEntryType.debit, LedgerEntry.amount_minor), else_=0)
        ),
        0,
    )
    credit_sum = func.coalesce(
        func.sum(
            case((LedgerEntry.entry_type == LedgerEntryType.credit, LedgerEntry.amount_minor), else_=0)
        ),
        0,
    )
    row = db.execute(
        select(debit_sum, credit_sum).where(LedgerEntry.patient_id == patient_id)
    ).one()
    return int(row[0] or 0), int(row[1] or 0)


def balance_of(db: Session, patient_id: int) -> int:
    debits, credits = _totals(db, patient_id)
    return debits - credits


def list_entries(db: Session, patient_id: int) -> list[LedgerEntry]:
    stmt = (
        select(LedgerEntry)
        .where(LedgerEntry.patient_id == patient_id)
        .order_by(LedgerEntry.entry_date.asc(), LedgerEntry.id.asc())
    )
    return list(db.scalars(stmt))


def get_statement(db: Session, patient_id: int) -> Statement:
    get_patient(db, patient_id)
    debits, credits = _totals(db, patient_id)
    return Statement(
        patient_id=patient_id,
        entries=list_entries(db, patient_id),
        total_debits_minor=debits,
        total_credits_minor=credits,
        balance_minor=debits - credits,
    )


def record_payment(
    db: Session,
    *,
    patient_id: int,
    amount_minor: int,
    method: PaymentMethod | str,
    actor: User,
    notes: str | None = None,
    reference: str | None = None,
    related_invoice_id: int | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> LedgerEntry:
    """Record a payment as a CREDIT. Over-payment is allowed."""
    if isinstance(amount_minor, bool) or not isinstance(amount_minor, int) or amount_minor <= 0:
        raise InvalidAmount(
            "Payment amount must be positive", entity_type="patient", entity_id=patient_id
        )
    try:
        method = PaymentMethod(method)
    except ValueError:
        raise InvalidPaymentMethod(
            f"Unknown payment method {method!r}", entity_type="patient", entity_id=patient_id
        ) from None
    lock_patient(db, patient_id)
    if related_invoice_id is not None:
        invoice = db.get(Invoice, related_invoice_id)
        if not invoice or invoice.patient_id != patient_id:
            raise NotFound(
                f"Invoice {related_invoice_id} not found for patient {patient_id}",
                entity_type="invoice",
                entity_id=related_invoice_id,
            )
    description = f"Payment via {METHOD_LABELS[method]}"
    if reference:
        description = f"{description} (Ref: {reference})"
    entry = append(
        db,
        patient_id=patient_id,
        entry_type=LedgerEntryType.credit,
        category=LedgerEntryCategory.payment,
        amount_minor=amount_minor,
        description=description,
        actor=actor,
        method=method,
        reference=reference,
        note=notes,
        related_invoice_id=related_invoice_id,
    )
    log_event(
        db,
        actor=actor,
        action="ledger.payment_recorded",
        entity_type="patient",
        entity_id=str(patient_id),
        patient_id=patient_id,
        after_obj=entry,
        request_id=request_id,
        ip_address=ip_address,
    )
    return entry
