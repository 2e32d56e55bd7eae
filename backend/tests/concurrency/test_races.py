"""Two sessions on one file-backed database, interleaved at the guarded updates."""

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from dental_ledger.core.errors import ConcurrentModification, ItemNotBillable
from dental_ledger.models import Base
from dental_ledger.models.invoice import Invoice
from dental_ledger.models.ledger import LedgerEntry
from dental_ledger.models.treatment_plan import TreatmentItem, TreatmentItemStatus
from dental_ledger.models.user import Role, User
from dental_ledger.services import invoicing, ledger, treatment_plan
from dental_ledger.services.patients import create_patient
from dental_ledger.services.users import create_user


@pytest.fixture()
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def seeded(file_sessions):
    session = file_sessions()
    try:
        admin = create_user(session, email="admin@smileclinic.in", role=Role.admin)
        doctor = create_user(session, email="dr.shah@smileclinic.in", role=Role.doctor)
        patient = create_patient(session, first_name="Farah", last_name="Khan", actor=admin)
        item = treatment_plan.add_item(
            session,
            patient_id=patient.id,
            tooth_id=16,
            procedure_name="Root Canal",
            cost_minor=4500,
            actor=admin,
        )
        session.commit()
        return {
            "admin_id": admin.id,
            "doctor_id": doctor.id,
            "patient_id": patient.id,
            "item_id": item.id,
        }
    finally:
        session.close()


def _count(session, stmt):
    return session.scalar(select(func.count()).select_from(stmt.subquery()))


def test_concurrent_invoice_for_same_item_fails(file_sessions, seeded, monkeypatch):
    setup = file_sessions()
    admin = setup.get(User, seeded["admin_id"])
    treatment_plan.approve_and_start(setup, patient_id=seeded["patient_id"], actor=admin)
    treatment_plan.complete_item(setup, item_id=seeded["item_id"], actor=admin)
    setup.commit()
    setup.close()

    original_load = invoicing._load_billable_items
    fired = []

    def load_then_let_other_invoice_commit(db, patient_id, item_ids):
        items = original_load(db, patient_id, item_ids)
        if not fired:
            fired.append(True)
            other = file_sessions()
            try:
                invoicing.create_invoice(
                    other,
                    patient_id=patient_id,
                    doctor_id=seeded["doctor_id"],
                    item_ids=item_ids,
                    actor=other.get(User, seeded["admin_id"]),
                )
                other.commit()
            finally:
                other.close()
        return items

    monkeypatch.setattr(invoicing, "_load_billable_items", load_then_let_other_invoice_commit)

    session = file_sessions()
    try:
        with pytest.raises(ItemNotBillable):
            invoicing.create_invoice(
                session,
                patient_id=seeded["patient_id"],
                doctor_id=seeded["doctor_id"],
                item_ids=[seeded["item_id"]],
                actor=session.get(User, seeded["admin_id"]),
            )
        session.rollback()

        assert fired
        assert ledger.balance_of(session, seeded["patient_id"]) == 4500
        assert _count(session, select(Invoice.id)) == 1
        item = session.get(TreatmentItem, seeded["item_id"])
        assert item.status == TreatmentItemStatus.billed
    finally:
        session.close()


def test_concurrent_approval_of_same_items_fails(file_sessions, seeded, monkeypatch):
    original_append = ledger.append
    fired = []

    def let_other_approval_commit_first(db, **kwargs):
        if not fired:
            fired.append(True)
            other = file_sessions()
            try:
                treatment_plan.approve_and_start(
                    other,
                    patient_id=seeded["patient_id"],
                    actor=other.get(User, seeded["admin_id"]),
                )
                other.commit()
            finally:
                other.close()
        return original_append(db, **kwargs)

    monkeypatch.setattr(ledger, "append", let_other_approval_commit_first)

    session = file_sessions()
    try:
        with pytest.raises(ConcurrentModification):
            treatment_plan.approve_and_start(
                session,
                patient_id=seeded["patient_id"],
                actor=session.get(User, seeded["admin_id"]),
            )
        session.rollback()

        assert ledger.balance_of(session, seeded["patient_id"]) == 4500
        assert _count(session, select(LedgerEntry.id)) == 1
        item = session.get(TreatmentItem, seeded["item_id"])
        assert item.status == TreatmentItemStatus.in_progress
    finally:
        session.close()
