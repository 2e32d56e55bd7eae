import pytest
from sqlalchemy import delete, select

from dental_ledger.core.errors import (
    InvalidAmount,
    InvalidToothId,
    InvalidTransition,
    ItemNotFound,
    NothingToApprove,
    ProcedureUnavailable,
)
from dental_ledger.models.chart import ToothStatus
from dental_ledger.models.ledger import LedgerEntry, LedgerEntryCategory, LedgerEntryType
from dental_ledger.models.treatment_plan import TreatmentItem, TreatmentItemStatus
from dental_ledger.services import invoicing, ledger, procedures, tooth_chart, treatment_plan


def _add(db, patient, actor, tooth, name, cost, **kwargs):
    item = treatment_plan.add_item(
        db,
        patient_id=patient.id,
        tooth_id=tooth,
        procedure_name=name,
        cost_minor=cost,
        actor=actor,
        **kwargs,
    )
    db.commit()
    return item


def _entries(db, patient):
    return list(
        db.scalars(
            select(LedgerEntry).where(LedgerEntry.patient_id == patient.id).order_by(LedgerEntry.id)
        )
    )


def test_add_item_is_proposed_and_plans_tooth(db, patient, admin):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)

    assert item.status == TreatmentItemStatus.proposed
    assert item.tooth_id == "16"
    assert item.cost_minor == 4500
    assert tooth_chart.get_status(db, patient.id, 16) == ToothStatus.planned
    assert ledger.balance_of(db, patient.id) == 0


@pytest.mark.parametrize("status", [ToothStatus.decayed, ToothStatus.completed, ToothStatus.missing])
def test_add_item_keeps_recorded_tooth_status(db, patient, admin, status):
    tooth_chart.set_status(db, patient_id=patient.id, tooth_id=26, status=status, actor=admin)
    db.commit()

    _add(db, patient, admin, 26, "Crown", 9000)

    assert tooth_chart.get_status(db, patient.id, 26) == status


def test_add_item_can_overwrite_chart(db, patient, admin):
    tooth_chart.set_status(
        db, patient_id=patient.id, tooth_id=26, status=ToothStatus.decayed, actor=admin
    )
    db.commit()

    _add(db, patient, admin, 26, "Filling", 1500, overwrite_chart=True)

    assert tooth_chart.get_status(db, patient.id, 26) == ToothStatus.planned


def test_add_item_rejects_invalid_tooth(db, patient, admin):
    with pytest.raises(InvalidToothId):
        _add(db, patient, admin, 9, "Filling", 1500)
    db.rollback()
    assert treatment_plan.list_items(db, patient.id) == []


@pytest.mark.parametrize("cost", [-1, 12.5, "4500", None])
def test_add_item_rejects_bad_cost(db, patient, admin, cost):
    with pytest.raises(InvalidAmount):
        _add(db, patient, admin, 16, "Filling", cost)


def test_approve_posts_one_batch_debit(db, patient, admin):
    first = _add(db, patient, admin, 16, "Root Canal", 4500)
    second = _add(db, patient, admin, 24, "Filling", 1500)

    result = treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()

    assert result.amount_minor == 6000
    assert [item.id for item in result.items] == [first.id, second.id]
    entries = _entries(db, patient)
    assert len(entries) == 1
    assert entries[0].entry_type == LedgerEntryType.debit
    assert entries[0].category == LedgerEntryCategory.treatment_start
    assert entries[0].amount_minor == 6000
    for item in (first, second):
        db.refresh(item)
        assert item.status == TreatmentItemStatus.in_progress
        assert item.charge_entry_id == entries[0].id
        assert item.started_at is not None
    assert ledger.balance_of(db, patient.id) == 6000


def test_approve_only_touches_proposed_items(db, patient, admin):
    _add(db, patient, admin, 16, "Root Canal", 4500)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()
    later = _add(db, patient, admin, 36, "Scaling", 800)

    result = treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()

    assert [item.id for item in result.items] == [later.id]
    assert result.amount_minor == 800
    assert ledger.balance_of(db, patient.id) == 5300


def test_approve_with_nothing_proposed_fails(db, patient, admin):
    with pytest.raises(NothingToApprove):
        treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    assert _entries(db, patient) == []


def test_approve_zero_cost_batch_appends_no_entry(db, patient, admin):
    item = _add(db, patient, admin, 31, "Consultation", 0)

    result = treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()

    assert result.entry is None
    assert _entries(db, patient) == []
    db.refresh(item)
    assert item.status == TreatmentItemStatus.in_progress


def test_root_canal_revert_and_delete(db, patient, admin):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    item_id = item.id
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()
    assert ledger.balance_of(db, patient.id) == 4500

    treatment_plan.revert(db, item_id=item_id, actor=admin)
    db.commit()
    assert ledger.balance_of(db, patient.id) == 0

    treatment_plan.delete_item(db, item_id=item_id, actor=admin)
    db.commit()
    assert tooth_chart.get_status(db, patient.id, 16) == ToothStatus.healthy
    assert db.get(TreatmentItem, item_id) is None


def test_revert_credits_exactly_the_item_share(db, patient, admin):
    _add(db, patient, admin, 16, "Root Canal", 4500)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()
    balance_before = ledger.balance_of(db, patient.id)

    crown = _add(db, patient, admin, 26, "Crown", 9000)
    filling = _add(db, patient, admin, 24, "Filling", 1500)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()

    reverted = treatment_plan.revert(db, item_id=crown.id, actor=admin)
    db.commit()

    assert reverted.status == TreatmentItemStatus.proposed
    assert reverted.charge_entry_id is None
    assert reverted.started_at is None
    assert ledger.balance_of(db, patient.id) == balance_before + filling.cost_minor
    credit = _entries(db, patient)[-1]
    assert credit.entry_type == LedgerEntryType.credit
    assert credit.category == LedgerEntryCategory.treatment_revert
    assert credit.amount_minor == 9000
    assert credit.related_item_id == crown.id


def test_reverted_item_can_be_approved_again(db, patient, admin):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()
    treatment_plan.revert(db, item_id=item.id, actor=admin)
    db.commit()

    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()

    db.refresh(item)
    assert item.status == TreatmentItemStatus.in_progress
    assert ledger.balance_of(db, patient.id) == 4500


def test_revert_requires_in_progress(db, patient, admin):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)

    with pytest.raises(InvalidTransition):
        treatment_plan.revert(db, item_id=item.id, actor=admin)
    assert _entries(db, patient) == []


def test_complete_marks_tooth_completed(db, patient, admin):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()

    completed = treatment_plan.complete_item(db, item_id=item.id, actor=admin)
    db.commit()

    assert completed.status == TreatmentItemStatus.completed
    assert completed.completed_at is not None
    assert tooth_chart.get_status(db, patient.id, 16) == ToothStatus.completed
    assert ledger.balance_of(db, patient.id) == 4500


def test_complete_leaves_missing_tooth(db, patient, admin):
    item = _add(db, patient, admin, 38, "Extraction", 2000)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    tooth_chart.set_status(
        db, patient_id=patient.id, tooth_id=38, status=ToothStatus.missing, actor=admin
    )
    db.commit()

    treatment_plan.complete_item(db, item_id=item.id, actor=admin)
    db.commit()

    assert tooth_chart.get_status(db, patient.id, 38) == ToothStatus.missing


def test_complete_requires_in_progress(db, patient, admin):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    with pytest.raises(InvalidTransition):
        treatment_plan.complete_item(db, item_id=item.id, actor=admin)


@pytest.mark.parametrize(
    "steps",
    [("approve",), ("approve", "complete"), ("approve", "complete", "bill")],
    ids=["in_progress", "completed", "billed"],
)
def test_delete_only_while_proposed(db, patient, admin, doctor, steps):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    if "approve" in steps:
        treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    if "complete" in steps:
        treatment_plan.complete_item(db, item_id=item.id, actor=admin)
    if "bill" in steps:
        invoicing.create_invoice(
            db, patient_id=patient.id, doctor_id=doctor.id, item_ids=[item.id], actor=admin
        )
    db.commit()
    balance = ledger.balance_of(db, patient.id)
    status = tooth_chart.get_status(db, patient.id, 16)

    with pytest.raises(InvalidTransition):
        treatment_plan.delete_item(db, item_id=item.id, actor=admin)
    db.rollback()

    assert db.get(TreatmentItem, item.id) is not None
    assert ledger.balance_of(db, patient.id) == balance
    assert tooth_chart.get_status(db, patient.id, 16) == status


@pytest.mark.parametrize(
    "status", [ToothStatus.decayed, ToothStatus.completed, ToothStatus.missing]
)
def test_delete_keeps_tooth_marked_since(db, patient, admin, status):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    tooth_chart.set_status(db, patient_id=patient.id, tooth_id=16, status=status, actor=admin)
    db.commit()

    treatment_plan.delete_item(db, item_id=item.id, actor=admin)
    db.commit()

    assert tooth_chart.get_status(db, patient.id, 16) == status


def test_delete_keeps_tooth_planned_by_another_item(db, patient, admin):
    first = _add(db, patient, admin, 16, "Root Canal", 4500)
    _add(db, patient, admin, 16, "Crown", 9000)

    treatment_plan.delete_item(db, item_id=first.id, actor=admin)
    db.commit()

    assert tooth_chart.get_status(db, patient.id, 16) == ToothStatus.planned


def test_unknown_item(db, admin):
    with pytest.raises(ItemNotFound):
        treatment_plan.revert(db, item_id=4242, actor=admin)
    with pytest.raises(ItemNotFound):
        treatment_plan.delete_item(db, item_id=4242, actor=admin)


def test_list_items_filters_by_status(db, patient, admin):
    started = _add(db, patient, admin, 16, "Root Canal", 4500)
    treatment_plan.approve_and_start(db, patient_id=patient.id, actor=admin)
    db.commit()
    proposed = _add(db, patient, admin, 24, "Filling", 1500)

    assert [i.id for i in treatment_plan.list_items(db, patient.id)] == [started.id, proposed.id]
    assert [
        i.id
        for i in treatment_plan.list_items(db, patient.id, status=TreatmentItemStatus.proposed)
    ] == [proposed.id]


def test_item_deleted_before_lock_reports_not_found(db, patient, admin, monkeypatch):
    item = _add(db, patient, admin, 16, "Root Canal", 4500)
    item_id = item.id
    original_lock = treatment_plan.lock_patient

    def lock_after_concurrent_delete(session, patient_id):
        session.execute(delete(TreatmentItem).where(TreatmentItem.id == item_id))
        return original_lock(session, patient_id)

    monkeypatch.setattr(treatment_plan, "lock_patient", lock_after_concurrent_delete)

    with pytest.raises(ItemNotFound):
        treatment_plan.delete_item(db, item_id=item_id, actor=admin)


def test_add_item_from_procedure_catalog(db, patient, admin):
    rct = procedures.create_procedure(
        db, code="rct-01", name="Root Canal", price_minor=4500, actor=admin
    )
    db.commit()

    item = treatment_plan.add_item(
        db, patient_id=patient.id, tooth_id=16, procedure_id=rct.id, actor=admin
    )
    db.commit()

    assert item.procedure_id == rct.id
    assert item.procedure_name == "Root Canal"
    assert item.cost_minor == 4500


def test_add_item_procedure_price_can_be_overridden(db, patient, admin):
    crown = procedures.create_procedure(
        db, code="CRN-01", name="Crown", price_minor=9000, actor=admin
    )
    db.commit()

    item = treatment_plan.add_item(
        db,
        patient_id=patient.id,
        tooth_id=26,
        procedure_id=crown.id,
        cost_minor=8000,
        actor=admin,
    )
    db.commit()

    assert item.procedure_name == "Crown"
    assert item.cost_minor == 8000


def test_add_item_rejects_inactive_procedure(db, patient, admin):
    old = procedures.create_procedure(
        db, code="AMF-01", name="Amalgam Filling", price_minor=900, actor=admin
    )
    procedures.deactivate_procedure(db, procedure_id=old.id, actor=admin)
    db.commit()

    with pytest.raises(ProcedureUnavailable):
        treatment_plan.add_item(
            db, patient_id=patient.id, tooth_id=36, procedure_id=old.id, actor=admin
        )
    db.rollback()
    assert treatment_plan.list_items(db, patient.id) == []
    assert tooth_chart.get_status(db, patient.id, 36) == ToothStatus.healthy
