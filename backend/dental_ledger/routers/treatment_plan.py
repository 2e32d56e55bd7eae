from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import client_ip, get_current_user
from dental_ledger.models.treatment_plan import TreatmentItemStatus
from dental_ledger.models.user import User
from dental_ledger.schemas.treatment_plan import (
    ApprovalOut,
    TreatmentItemCreate,
    TreatmentItemOut,
)
from dental_ledger.services import treatment_plan

patient_router = APIRouter(prefix="/patients/{patient_id}/treatment-plan", tags=["treatment-plan"])
router = APIRouter(prefix="/treatment-items", tags=["treatment-plan"])


@patient_router.get("", response_model=list[TreatmentItemOut])
def list_treatment_items(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    item_status: TreatmentItemStatus | None = Query(default=None, alias="status"),
):
    return treatment_plan.list_items(db, patient_id, status=item_status)


@patient_router.post("", response_model=TreatmentItemOut, status_code=status.HTTP_201_CREATED)
def add_treatment_item(
    patient_id: int,
    payload: TreatmentItemCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    item = treatment_plan.add_item(
        db,
        patient_id=patient_id,
        tooth_id=payload.tooth_id,
        procedure_id=payload.procedure_id,
        procedure_name=payload.procedure_name,
        cost_minor=payload.cost_minor,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(item)
    return item


@patient_router.post("/approve", response_model=ApprovalOut)
def approve_and_start(
    patient_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    result = treatment_plan.approve_and_start(
        db,
        patient_id=patient_id,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    for item in result.items:
        db.refresh(item)
    if result.entry is not None:
        db.refresh(result.entry)
    return ApprovalOut.model_validate(result)


@router.get("/{item_id}", response_model=TreatmentItemOut)
def get_treatment_item(
    item_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return treatment_plan.get_item(db, item_id)


@router.post("/{item_id}/revert", response_model=TreatmentItemOut)
def revert_treatment_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    item = treatment_plan.revert(
        db,
        item_id=item_id,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(item)
    return item


@router.post("/{item_id}/complete", response_model=TreatmentItemOut)
def complete_treatment_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    item = treatment_plan.complete_item(
        db,
        item_id=item_id,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(item)
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_treatment_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    treatment_plan.delete_item(
        db,
        item_id=item_id,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    return None
