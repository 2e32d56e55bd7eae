from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import InvalidToothId, InvalidToothStatus
from dental_ledger.models.chart import FDI_TOOTH_IDS, ToothEntry, ToothStatus
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event
from dental_ledger.services.patients import get_patient, lock_patient

_VALID_TEETH = frozenset(FDI_TOOTH_IDS)

# Statuses add_item must not downgrade to "planned".
PLAN_PROTECTED_STATUSES = frozenset(
    {ToothStatus.decayed, ToothStatus.completed, ToothStatus.missing}
)


def normalize_tooth_id(value: int | str | None) -> str:
    if isinstance(value, bool) or value is None:
        raise InvalidToothId(value)
    tooth_id = str(value).strip()
    if tooth_id not in _VALID_TEETH:
        raise InvalidToothId(value)
    return tooth_id


def _get_entry(db: Session, patient_id: int, tooth_id: str) -> ToothEntry | None:
    return db.scalar(
        select(ToothEntry).where(
            ToothEntry.patient_id == patient_id, ToothEntry.tooth_id == tooth_id
        )
    )


def get_status(db: Session, patient_id: int, tooth_id: int | str) -> ToothStatus:
    entry = _get_entry(db, patient_id, normalize_tooth_id(tooth_id))
    return entry.status if entry else ToothStatus.healthy


def get_chart(db: Session, patient_id: int) -> dict[str, ToothStatus]:
    get_patient(db, patient_id)
    entries = db.scalars(
        select(ToothEntry)
        .where(ToothEntry.patient_id == patient_id)
        .order_by(ToothEntry.tooth_id)
    )
    return {entry.tooth_id: entry.status for entry in entries}


def write_status(
    db: Session, patient_id: int, tooth_id: str, status: ToothStatus, *, actor: User
) -> tuple[ToothStatus, ToothStatus]:
    """Overwrite one tooth without locking or auditing.

    Callers hold the patient lock. Returns ``(before, after)``.
    """
    entry = _get_entry(db, patient_id, tooth_id)
    before = entry.status if entry else ToothStatus.healthy
    if status == ToothStatus.healthy:
        if entry:
            db.delete(entry)
    elif entry:
        entry.status = status
        entry.updated_by_user_id = actor.id
    else:
        db.add(
            ToothEntry(
                patient_id=patient_id,
                tooth_id=tooth_id,
                status=status,
                created_by_user_id=actor.id,
                updated_by_user_id=actor.id,
            )
        )
    db.flush()
    return before, status


def set_status(
    db: Session,
    *,
    patient_id: int,
    tooth_id: int | str,
    status: ToothStatus | str,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> ToothStatus:
    tooth = normalize_tooth_id(tooth_id)
    try:
        status = ToothStatus(status)
    except ValueError:
        raise InvalidToothStatus(status, tooth_id=tooth) from None
    lock_patient(db, patient_id)
    before, after = write_status(db, patient_id, tooth, status, actor=actor)
    if before != after:
        log_event(
            db,
            actor=actor,
            action="chart.status_set" if after != ToothStatus.healthy else "chart.status_cleared",
            entity_type="patient",
            entity_id=str(patient_id),
            patient_id=patient_id,
            before_data={"tooth_id": tooth, "status": before.value},
            after_data={"tooth_id": tooth, "status": after.value},
            request_id=request_id,
            ip_address=ip_address,
        )
    return after


def clear_status(
    db: Session,
    *,
    patient_id: int,
    tooth_id: int | str,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> ToothStatus:
    return set_status(
        db,
        patient_id=patient_id,
        tooth_id=tooth_id,
        status=ToothStatus.healthy,
        actor=actor,
        request_id=request_id,
        ip_address=ip_address,
    )
