from __future__ import annotations

import logging
from datetime import date, timedelta
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from dental_ledger.core.errors import InvalidAmount, ItemNotBillable, NotFound
from dental_ledger.core.settings import settings
from dental_ledger.models.invoice import Invoice, InvoiceLine
from dental_ledger.models.ledger import LedgerEntryCategory, LedgerEntryType
from dental_ledger.models.treatment_plan import TreatmentItem, TreatmentItemStatus
from dental_ledger.models.user import Role, User
from dental_ledger.services import ledger
from dental_ledger.services.audit import log_event
from dental_ledger.services.patients import get_patient, lock_patient
from dental_ledger.services.users import require_user

logger = logging.getLogger("dental_ledger.invoicing")


def format_invoice_number(invoice_id: int) -> str:
    return f"INV-{invoice_id:06d}"


def _dedupe(item_ids) -> list[int]:
    seen: dict[int, None] = {}
    for item_id in item_ids:
        seen.setdefault(int(item_id), None)
    return list(seen)


def _load_billable_items(db: Session, patient_id: int, item_ids: list[int]) -> list[TreatmentItem]:
    items = {
        item.id: item
        for item in db.scalars(
            select(TreatmentItem)
            .where(TreatmentItem.id.in_(item_ids))
            .execution_options(populate_existing=True)
        )
    }
    missing = [
        item_id
        for item_id in item_ids
        if item_id not in items or items[item_id].patient_id != patient_id
    ]
    if missing:
        raise ItemNotBillable(
            f"Treatment items not found for patient {patient_id}: {missing}", missing
        )
    billed = [item_id for item_id in item_ids if items[item_id].status == TreatmentItemStatus.billed]
    if billed:
        raise ItemNotBillable(f"Treatment items already billed: {billed}", billed)
    not_completed = [
        item_id
        for item_id in item_ids
        if items[item_id].status != TreatmentItemStatus.completed
    ]
    if not_completed:
        raise ItemNotBillable(f"Treatment items are not completed: {not_completed}", not_completed)
    return [items[item_id] for item_id in item_ids]


def create_invoice(
    db: Session,
    *,
    patient_id: int,
    doctor_id: int,
    item_ids,
    actor: User,
    discount_minor: int = 0,
    notes: str | None = None,
    due_date: date | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Invoice:
    """Bill completed treatment items on one immutable invoice.

    All-or-nothing: every item must belong to the patient and be completed.
    The items flip to billed through a guarded update, so an item claimed by a
    concurrent invoice makes this call fail instead of billing it twice.

    Approval-time debits are provisional. The invoice posts one debit for its
    total and releases the provisional charge still carried by its items, so
    the patient is charged once for each item.
    """
    ids = _dedupe(item_ids)
    if not ids:
        raise ItemNotBillable("At least one treatment item is required")
    if isinstance(discount_minor, bool) or not isinstance(discount_minor, int) or discount_minor < 0:
        raise InvalidAmount(
            f"Discount must be a non-negative integer (got {discount_minor!r})",
            entity_type="patient",
            entity_id=patient_id,
        )

    lock_patient(db, patient_id)
    doctor = require_user(db, doctor_id, entity_type="doctor")
    if doctor.role != Role.doctor:
        raise NotFound(
            f"User {doctor_id} is not a doctor", entity_type="doctor", entity_id=doctor_id
        )
    items = _load_billable_items(db, patient_id, ids)

    subtotal = sum(item.cost_minor for item in items)
    if discount_minor > subtotal:
        raise InvalidAmount(
            f"Discount {discount_minor} exceeds invoice subtotal {subtotal}",
            entity_type="patient",
            entity_id=patient_id,
        )
    total = max(subtotal - discount_minor, 0)
    provisional = sum(item.cost_minor for item in items if item.charge_entry_id is not None)

    invoice = Invoice(
        patient_id=patient_id,
        doctor_id=doctor_id,
        invoice_number=uuid4().hex,
        due_date=due_date or date.today() + timedelta(days=settings.invoice_due_days),
        notes=notes,
        subtotal_minor=subtotal,
        discount_minor=discount_minor,
        total_minor=total,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    db.add(invoice)
    db.flush()
    invoice.invoice_number = format_invoice_number(invoice.id)

    result = db.execute(
        update(TreatmentItem)
        .where(
            TreatmentItem.id.in_(ids),
            TreatmentItem.status == TreatmentItemStatus.completed,
        )
        .values(
            status=TreatmentItemStatus.billed,
            invoice_id=invoice.id,
            updated_by_user_id=actor.id,
        )
    )
    if result.rowcount != len(ids):
        raise ItemNotBillable("Treatment items were billed by a concurrent invoice", ids)

    for item in items:
        db.add(
            InvoiceLine(
                invoice_id=invoice.id,
                treatment_item_id=item.id,
                procedure_name=item.procedure_name,
                tooth_id=item.tooth_id,
                cost_minor=item.cost_minor,
            )
        )
    db.flush()

    if total > 0:
        label = "treatment" if len(items) == 1 else "treatments"
        ledger.append(
            db,
            patient_id=patient_id,
            entry_type=LedgerEntryType.debit,
            category=LedgerEntryCategory.invoice,
            amount_minor=total,
            description=f"Invoice {invoice.invoice_number}: {len(items)} {label}",
            actor=actor,
            related_invoice_id=invoice.id,
        )
    if provisional > 0:
        ledger.append(
            db,
            patient_id=patient_id,
            entry_type=LedgerEntryType.credit,
            category=LedgerEntryCategory.charge_release,
            amount_minor=provisional,
            description=f"Provisional treatment charges settled by {invoice.invoice_number}",
            actor=actor,
            related_invoice_id=invoice.id,
        )

    db.refresh(invoice)
    log_event(
        db,
        actor=actor,
        action="invoice.created",
        entity_type="invoice",
        entity_id=str(invoice.id),
        patient_id=patient_id,
        after_obj=invoice,
        request_id=request_id,
        ip_address=ip_address,
    )
    logger.info(
        "Invoice %s created for patient %s: %s items, total %s",
        invoice.invoice_number,
        patient_id,
        len(items),
        total,
    )
    return invoice


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFound(f"Invoice {invoice_id} not found", entity_type="invoice", entity_id=invoice_id)
    return invoice


def list_invoices(db: Session, patient_id: int) -> list[Invoice]:
    get_patient(db, patient_id)
    stmt = (
        select(Invoice)
        .where(Invoice.patient_id == patient_id)
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
    )
    return list(db.scalars(stmt))
