from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import NotFound
from dental_ledger.models.patient import Patient
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event


def get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if not patient:
        raise NotFound(
            f"Patient {patient_id} not found", entity_type="patient", entity_id=patient_id
        )
    return patient


def lock_patient(db: Session, patient_id: int) -> Patient:
    """Take the per-patient write lock for the rest of the transaction.

    Chart, plan, invoice and ledger mutations for one patient are serialised
    on the patient row. SQLite ignores ``FOR UPDATE`` and serialises writers
    at the database level instead.
    """
    patient = db.scalar(
        select(Patient)
        .where(Patient.id == patient_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not patient:
        raise NotFound(
            f"Patient {patient_id} not found", entity_type="patient", entity_id=patient_id
        )
    return patient


def create_patient(
    db: Session,
    *,
    first_name: str,
    last_name: str,
    actor: User,
    date_of_birth: date | None = None,
    phone: str | None = None,
    email: str | None = None,
    notes: str | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Patient:
    patient = Patient(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        date_of_birth=date_of_birth,
        phone=phone,
        email=email,
        notes=notes,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    db.add(patient)
    db.flush()
    log_event(
        db,
        actor=actor,
        action="patient.created",
        entity_type="patient",
        entity_id=str(patient.id),
        patient_id=patient.id,
        after_obj=patient,
        request_id=request_id,
        ip_address=ip_address,
    )
    return patient
