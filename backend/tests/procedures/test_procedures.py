import pytest
from sqlalchemy import select

from dental_ledger.core.errors import DuplicateProcedureCode, InvalidAmount, NotFound
from dental_ledger.models.audit_log import AuditLog
from dental_ledger.services import procedures


def _create(db, actor, code, name, price, **kwargs):
    procedure = procedures.create_procedure(
        db, code=code, name=name, price_minor=price, actor=actor, **kwargs
    )
    db.commit()
    return procedure


def test_create_normalizes_code(db, admin):
    procedure = _create(db, admin, " rct-01 ", "Root Canal", 4500)
    assert procedure.code == "RCT-01"
    assert procedure.is_active is True


def test_codes_are_unique(db, admin):
    _create(db, admin, "RCT-01", "Root Canal", 4500)
    with pytest.raises(DuplicateProcedureCode):
        procedures.create_procedure(
            db, code="rct-01", name="Root Canal (molar)", price_minor=6000, actor=admin
        )


def test_negative_price_rejected(db, admin):
    with pytest.raises(InvalidAmount):
        procedures.create_procedure(db, code="SCL-01", name="Scaling", price_minor=-1, actor=admin)


def test_list_hides_inactive_by_default(db, admin):
    scaling = _create(db, admin, "SCL-01", "Scaling", 800)
    crown = _create(db, admin, "CRN-01", "Crown", 9000)
    procedures.deactivate_procedure(db, procedure_id=scaling.id, actor=admin)
    db.commit()

    assert [p.id for p in procedures.list_procedures(db)] == [crown.id]
    assert {p.id for p in procedures.list_procedures(db, include_inactive=True)} == {
        crown.id,
        scaling.id,
    }


def test_update_changes_catalog_and_is_audited(db, admin):
    crown = _create(db, admin, "CRN-01", "Crown", 9000)

    updated = procedures.update_procedure(
        db,
        procedure_id=crown.id,
        changes={"price_minor": 9500, "name": "Zirconia Crown", "commission": 10},
        actor=admin,
    )
    db.commit()

    assert updated.price_minor == 9500
    assert updated.name == "Zirconia Crown"
    audit = db.scalar(select(AuditLog).where(AuditLog.action == "procedure.updated"))
    assert audit.before_json["price_minor"] == 9000
    assert audit.after_json["price_minor"] == 9500


def test_update_rejects_code_taken_by_another(db, admin):
    _create(db, admin, "CRN-01", "Crown", 9000)
    veneer = _create(db, admin, "VNR-01", "Veneer", 7000)
    with pytest.raises(DuplicateProcedureCode):
        procedures.update_procedure(
            db, procedure_id=veneer.id, changes={"code": "crn-01"}, actor=admin
        )


def test_unknown_procedure(db, admin):
    with pytest.raises(NotFound):
        procedures.get_procedure(db, 404)


def test_catalog_over_http(client, admin_headers, receptionist, patient):
    staff_headers = {"X-User-Id": str(receptionist.id)}
    payload = {"code": "RCT-01", "name": "Root Canal", "price_minor": 4500}

    assert client.post("/procedures", json=payload, headers=staff_headers).status_code == 403
    response = client.post("/procedures", json=payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    procedure = response.json()

    response = client.post("/procedures", json=payload, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "duplicate_procedure_code"

    listed = client.get("/procedures", headers=staff_headers).json()
    assert [p["code"] for p in listed] == ["RCT-01"]

    response = client.post(
        f"/patients/{patient.id}/treatment-plan",
        json={"tooth_id": 16, "procedure_id": procedure["id"]},
        headers=staff_headers,
    )
    assert response.status_code == 201, response.text
    item = response.json()
    assert item["procedure_name"] == "Root Canal"
    assert item["cost_minor"] == 4500
    assert item["procedure_id"] == procedure["id"]

    response = client.put(
        f"/procedures/{procedure['id']}", json={"price_minor": 5000}, headers=admin_headers
    )
    assert response.status_code == 200, response.text
    assert response.json()["price_minor"] == 5000
    planned = client.get(f"/treatment-items/{item['id']}", headers=staff_headers).json()
    assert planned["cost_minor"] == 4500

    response = client.delete(f"/procedures/{procedure['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert client.get("/procedures", headers=staff_headers).json() == []

    response = client.post(
        f"/patients/{patient.id}/treatment-plan",
        json={"tooth_id": 26, "procedure_id": procedure["id"]},
        headers=staff_headers,
    )
    assert response.status_code == 409
    assert response.json()["error"] == "procedure_unavailable"


def test_treatment_item_needs_name_and_cost_without_procedure(client, admin_headers, patient):
    response = client.post(
        f"/patients/{patient.id}/treatment-plan",
        json={"tooth_id": 16, "procedure_name": "Root Canal"},
        headers=admin_headers,
    )
    assert response.status_code == 422
