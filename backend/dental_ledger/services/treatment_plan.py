"""Treatment plan items and their status machine.

proposed -> in_progress (approve_and_start, batch debit)
in_progress -> proposed (revert, exact credit of the item's share)
in_progress -> completed (complete_item)
completed -> billed (invoicing only, see services.invoicing)

Every transition is a guarded UPDATE on the expected current status, taken
under the per-patient lock, so a stale read cannot move an item twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from dental_ledger.core.errors import (
    ConcurrentModification,
    InvalidAmount,
    InvalidTransition,
    ItemNotFound,
    LedgerCoreError,
    NothingToApprove,
)
from dental_ledger.core.settings import settings
from dental_ledger.models.chart import ToothStatus
from dental_ledger.models.ledger import LedgerEntry, LedgerEntryCategory, LedgerEntryType
from dental_ledger.models.treatment_plan import (
    OPEN_ITEM_STATUSES,
    TreatmentItem,
    TreatmentItemStatus,
)
from dental_ledger.models.user import User
from dental_ledger.services import ledger
from dental_ledger.services.audit import log_event, snapshot_model
from dental_ledger.services.patients import get_patient, lock_patient
from dental_ledger.services.procedures import require_active_procedure
from dental_ledger.services.tooth_chart import (
    PLAN_PROTECTED_STATUSES,
    get_status,
    normalize_tooth_id,
    write_status,
)

logger = logging.getLogger("dental_ledger.treatment_plan")


@dataclass(frozen=True)
class ApprovalResult:
    patient_id: int
    items: list[TreatmentItem]
    amount_minor: int
    entry: LedgerEntry | None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_cost(cost_minor: Any, patient_id: int) -> int:
    if isinstance(cost_minor, bool) or not isinstance(cost_minor, int) or cost_minor < 0:
        raise InvalidAmount(
            f"Treatment cost must be a non-negative integer (got {cost_minor!r})",
            entity_type="patient",
            entity_id=patient_id,
        )
    return cost_minor


def get_item(db: Session, item_id: int) -> TreatmentItem:
    item = db.get(TreatmentItem, item_id)
    if not item:
        raise ItemNotFound(item_id)
    return item


def _get_item_locked(db: Session, item_id: int) -> TreatmentItem:
    item = get_item(db, item_id)
    lock_patient(db, item.patient_id)
    # Re-read under the lock; the item may have been deleted meanwhile.
    item = db.scalar(
        select(TreatmentItem)
        .where(TreatmentItem.id == item_id)
        .execution_options(populate_existing=True)
    )
    if not item:
        raise ItemNotFound(item_id)
    return item


def list_items(
    db: Session, patient_id: int, *, status: TreatmentItemStatus | None = None
) -> list[TreatmentItem]:
    get_patient(db, patient_id)
    stmt = select(TreatmentItem).where(TreatmentItem.patient_id == patient_id)
    if status is not None:
        stmt = stmt.where(TreatmentItem.status == status)
    stmt = stmt.order_by(TreatmentItem.created_at.asc(), TreatmentItem.id.asc())
    return list(db.scalars(stmt))


def _transition(
    db: Session,
    item_ids: list[int],
    *,
    expected: TreatmentItemStatus,
    values: dict[str, Any],
) -> int:
    result = db.execute(
        update(TreatmentItem)
        .where(TreatmentItem.id.in_(item_ids), TreatmentItem.status == expected)
        .values(**values)
    )
    return result.rowcount


def _require_status(item: TreatmentItem, expected: TreatmentItemStatus, operation: str) -> None:
    if item.status != expected:
        raise InvalidTransition(
            f"Cannot {operation} treatment item {item.id} with status "
            f"'{item.status.value}' (requires '{expected.value}')",
            entity_type="treatment_item",
            entity_id=item.id,
        )


def add_item(
    db: Session,
    *,
    patient_id: int,
    tooth_id: int | str,
    actor: User,
    procedure_name: str | None = None,
    cost_minor: int | None = None,
    procedure_id: int | None = None,
    overwrite_chart: bool | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> TreatmentItem:
    """Add a proposed item, optionally from a catalog procedure.

    A catalog procedure supplies the name and standard price unless they are
    given explicitly; inactive procedures cannot be planned.
    """
    tooth = normalize_tooth_id(tooth_id)
    if procedure_id is not None:
        procedure = require_active_procedure(db, procedure_id)
        if procedure_name is None:
            procedure_name = procedure.name
        if cost_minor is None:
            cost_minor = procedure.price_minor
    cost_minor = _validate_cost(cost_minor, patient_id)
    name = (procedure_name or "").strip()
    if not name:
        raise LedgerCoreError(
            "Procedure name is required", entity_type="patient", entity_id=patient_id
        )
    lock_patient(db, patient_id)

    item = TreatmentItem(
        patient_id=patient_id,
        tooth_id=tooth,
        procedure_id=procedure_id,
        procedure_name=name,
        cost_minor=cost_minor,
        status=TreatmentItemStatus.proposed,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    db.add(item)
    db.flush()

    if overwrite_chart is None:
        overwrite_chart = settings.chart_plan_overwrites
    current = get_status(db, patient_id, tooth)
    if overwrite_chart or current not in PLAN_PROTECTED_STATUSES:
        write_status(db, patient_id, tooth, ToothStatus.planned, actor=actor)

    log_event(
        db,
        actor=actor,
        action="treatment_plan.item_added",
        entity_type="treatment_item",
        entity_id=str(item.id),
        patient_id=patient_id,
        after_obj=item,
        request_id=request_id,
        ip_address=ip_address,
    )
    return item


def approve_and_start(
    db: Session,
    *,
    patient_id: int,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> ApprovalResult:
    """Start every proposed item and post one batch debit for their costs."""
    lock_patient(db, patient_id)
    items = list(
        db.scalars(
            select(TreatmentItem)
            .where(
                TreatmentItem.patient_id == patient_id,
                TreatmentItem.status == TreatmentItemStatus.proposed,
            )
            .order_by(TreatmentItem.id.asc())
            .execution_options(populate_existing=True)
        )
    )
    if not items:
        raise NothingToApprove(patient_id)

    amount = sum(item.cost_minor for item in items)
    item_ids = [item.id for item in items]
    entry = None
    if amount > 0:
        label = "item" if len(items) == 1 else "items"
        entry = ledger.append(
            db,
            patient_id=patient_id,
            entry_type=LedgerEntryType.debit,
            category=LedgerEntryCategory.treatment_start,
            amount_minor=amount,
            description=f"Treatment started: batch of {len(items)} {label}",
            actor=actor,
        )

    changed = _transition(
        db,
        item_ids,
        expected=TreatmentItemStatus.proposed,
        values={
            "status": TreatmentItemStatus.in_progress,
            "started_at": _now(),
            "charge_entry_id": entry.id if entry else None,
            "updated_by_user_id": actor.id,
        },
    )
    if changed != len(item_ids):
        raise ConcurrentModification(
            "Treatment plan changed while approving; reload and retry",
            entity_type="patient",
            entity_id=patient_id,
        )

    log_event(
        db,
        actor=actor,
        action="treatment_plan.approved",
        entity_type="patient",
        entity_id=str(patient_id),
        patient_id=patient_id,
        after_data={
            "treatment_item_ids": item_ids,
            "amount_minor": amount,
            "ledger_entry_id": entry.id if entry else None,
        },
        request_id=request_id,
        ip_address=ip_address,
    )
    logger.info(
        "Approved %s treatment items for patient %s (debit %s)", len(items), patient_id, amount
    )
    return ApprovalResult(patient_id=patient_id, items=items, amount_minor=amount, entry=entry)


def revert(
    db: Session,
    *,
    item_id: int,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> TreatmentItem:
    """Move an in-progress item back to proposed and credit its share of the batch debit."""
    item = _get_item_locked(db, item_id)
    _require_status(item, TreatmentItemStatus.in_progress, "revert")
    before_data = snapshot_model(item)

    if item.charge_entry_id is not None and item.cost_minor > 0:
        ledger.append(
            db,
            patient_id=item.patient_id,
            entry_type=LedgerEntryType.credit,
            category=LedgerEntryCategory.treatment_revert,
            amount_minor=item.cost_minor,
            description=f"Reverted: {item.procedure_name} (tooth {item.tooth_id})",
            actor=actor,
            related_item_id=item.id,
        )

    changed = _transition(
        db,
        [item.id],
        expected=TreatmentItemStatus.in_progress,
        values={
            "status": TreatmentItemStatus.proposed,
            "started_at": None,
            "charge_entry_id": None,
            "updated_by_user_id": actor.id,
        },
    )
    if changed != 1:
        raise ConcurrentModification(
            f"Treatment item {item.id} changed while reverting",
            entity_type="treatment_item",
            entity_id=item.id,
        )
    db.refresh(item)
    log_event(
        db,
        actor=actor,
        action="treatment_plan.item_reverted",
        entity_type="treatment_item",
        entity_id=str(item.id),
        patient_id=item.patient_id,
        before_data=before_data,
        after_obj=item,
        request_id=request_id,
        ip_address=ip_address,
    )
    return item


def complete_item(
    db: Session,
    *,
    item_id: int,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> TreatmentItem:
    item = _get_item_locked(db, item_id)
    _require_status(item, TreatmentItemStatus.in_progress, "complete")
    before_data = snapshot_model(item)

    changed = _transition(
        db,
        [item.id],
        expected=TreatmentItemStatus.in_progress,
        values={
            "status": TreatmentItemStatus.completed,
            "completed_at": _now(),
            "updated_by_user_id": actor.id,
        },
    )
    if changed != 1:
        raise ConcurrentModification(
            f"Treatment item {item.id} changed while completing",
            entity_type="treatment_item",
            entity_id=item.id,
        )
    db.refresh(item)
    if get_status(db, item.patient_id, item.tooth_id) != ToothStatus.missing:
        write_status(db, item.patient_id, item.tooth_id, ToothStatus.completed, actor=actor)

    log_event(
        db,
        actor=actor,
        action="treatment_plan.item_completed",
        entity_type="treatment_item",
        entity_id=str(item.id),
        patient_id=item.patient_id,
        before_data=before_data,
        after_obj=item,
        request_id=request_id,
        ip_address=ip_address,
    )
    return item


def _tooth_still_planned_by_others(db: Session, item: TreatmentItem) -> bool:
    count = db.scalar(
        select(func.count(TreatmentItem.id)).where(
            TreatmentItem.patient_id == item.patient_id,
            TreatmentItem.tooth_id == item.tooth_id,
            TreatmentItem.id != item.id,
            TreatmentItem.status.in_(OPEN_ITEM_STATUSES),
        )
    )
    return bool(count)


def delete_item(
    db: Session,
    *,
    item_id: int,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> None:
    """Delete a proposed item.

    The tooth is cleared only if it still shows ``planned`` and no other open
    item on it holds the plan; a status set since (decayed, completed,
    missing) is left alone.
    """
    item = _get_item_locked(db, item_id)
    _require_status(item, TreatmentItemStatus.proposed, "delete")
    before_data = snapshot_model(item)
    patient_id = item.patient_id

    tooth_cleared = False
    if get_status(db, patient_id, item.tooth_id) == ToothStatus.planned:
        if not _tooth_still_planned_by_others(db, item):
            write_status(db, patient_id, item.tooth_id, ToothStatus.healthy, actor=actor)
            tooth_cleared = True

    db.delete(item)
    db.flush()
    log_event(
        db,
        actor=actor,
        action="treatment_plan.item_deleted",
        entity_type="treatment_item",
        entity_id=str(item_id),
        patient_id=patient_id,
        before_data=before_data,
        after_data={"tooth_cleared": tooth_cleared},
        request_id=request_id,
        ip_address=ip_address,
    )
