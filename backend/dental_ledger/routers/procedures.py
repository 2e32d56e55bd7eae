from fastapi import APIRouter, Depends, Header, Query, Request, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import client_ip, get_current_user, require_admin
from dental_ledger.models.user import User
from dental_ledger.schemas.procedure import ProcedureCreate, ProcedureOut, ProcedureUpdate
from dental_ledger.services import procedures

router = APIRouter(prefix="/procedures", tags=["procedures"])


@router.get("", response_model=list[ProcedureOut])
def list_procedures(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
    include_inactive: bool = Query(default=False),
):
    return procedures.list_procedures(db, include_inactive=include_inactive)


@router.post("", response_model=ProcedureOut, status_code=status.HTTP_201_CREATED)
def create_procedure(
    payload: ProcedureCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    x_request_id: str | None = Header(default=None),
):
    procedure = procedures.create_procedure(
        db,
        code=payload.code,
        name=payload.name,
        price_minor=payload.price_minor,
        is_active=payload.is_active,
        actor=admin,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(procedure)
    return procedure


@router.get("/{procedure_id}", response_model=ProcedureOut)
def get_procedure(
    procedure_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return procedures.get_procedure(db, procedure_id)


@router.put("/{procedure_id}", response_model=ProcedureOut)
def update_procedure(
    procedure_id: int,
    payload: ProcedureUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    x_request_id: str | None = Header(default=None),
):
    procedure = procedures.update_procedure(
        db,
        procedure_id=procedure_id,
        changes=payload.model_dump(exclude_unset=True),
        actor=admin,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(procedure)
    return procedure


@router.delete("/{procedure_id}", response_model=ProcedureOut)
def delete_procedure(
    procedure_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    x_request_id: str | None = Header(default=None),
):
    procedure = procedures.deactivate_procedure(
        db,
        procedure_id=procedure_id,
        actor=admin,
        request_id=x_request_id,
        ip_address=client_ip(request),
    )
    db.commit()
    db.refresh(procedure)
    return procedure
