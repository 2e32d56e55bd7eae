from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import client_ip, get_current_user
from dental_ledger.models.user import User
from dental_ledger.schemas.chart import ToothChartOut, ToothStatusOut, ToothStatusUpdate
from dental_ledger.services import tooth_chart
from dental_ledger.services.patients import get_patient

router = APIRouter(prefix="/patients/{patient_id}/chart", tags=["chart"])


@router.get("", response_model=ToothChartOut)
def get_chart(
    patient_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return ToothChartOut(patient_id=patient_id, teeth=tooth_chart.get_chart(db, patient_id))


@router.get("/{tooth_id}", response_model=ToothStatusOut)
def get_tooth(
    patient_id: int,
    tooth_id: str,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    tooth = tooth_chart.normalize_tooth_id(tooth_id)
    get_patient(db, patient_id)
    return ToothStatusOut(tooth_id=tooth, status=tooth_chart.get_status(db, patient_id, tooth))


@router.put("/{tooth_id}", response_model=ToothStatusOut)
def set_tooth_status(
    patient_id: int,
    tooth_id: str,
    payload: ToothStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    tooth = tooth_chart.normalize_tooth_id(tooth_id)
    status = tooth_chart.set_status(
        db,
        patient_id=patient_id,
        tooth_id=tooth,
        status=payload.status,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    return ToothStatusOut(tooth_id=tooth, status=status)


@router.delete("/{tooth_id}", response_model=ToothStatusOut)
def clear_tooth_status(
    patient_id: int,
    tooth_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    x_request_id: str | None = Header(default=None),
):
    tooth = tooth_chart.normalize_tooth_id(tooth_id)
    status = tooth_chart.clear_status(
        db,
        patient_id=patient_id,
        tooth_id=tooth,
        actor=user,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    return ToothStatusOut(tooth_id=tooth, status=status)
