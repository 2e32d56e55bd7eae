from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import (
    DuplicateProcedureCode,
    InvalidAmount,
    LedgerCoreError,
    NotFound,
    ProcedureUnavailable,
)
from dental_ledger.models.procedure import Procedure
from dental_ledger.models.user import User
from dental_ledger.services.audit import log_event, snapshot_model

logger = logging.getLogger("dental_ledger.procedures")

_EDITABLE_FIELDS = ("code", "name", "price_minor", "is_active")


def _normalize_code(code: str) -> str:
    value = (code or "").strip().upper()
    if not value:
        raise LedgerCoreError("Procedure code is required", entity_type="procedure")
    return value


def _validate_price(price_minor: Any) -> int:
    if isinstance(price_minor, bool) or not isinstance(price_minor, int) or price_minor < 0:
        raise InvalidAmount(
            f"Procedure price must be a non-negative integer (got {price_minor!r})",
            entity_type="procedure",
        )
    return price_minor


def _ensure_code_free(db: Session, code: str, *, exclude_id: int | None = None) -> None:
    stmt = select(Procedure.id).where(Procedure.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Procedure.id != exclude_id)
    existing = db.scalar(stmt)
    if existing is not None:
        raise DuplicateProcedureCode(
            f"Procedure code {code} is already used", entity_type="procedure", entity_id=existing
        )


def list_procedures(db: Session, *, include_inactive: bool = False) -> list[Procedure]:
    stmt = select(Procedure)
    if not include_inactive:
        stmt = stmt.where(Procedure.is_active.is_(True))
    return list(db.scalars(stmt.order_by(Procedure.name.asc(), Procedure.id.asc())))


def get_procedure(db: Session, procedure_id: int) -> Procedure:
    procedure = db.get(Procedure, procedure_id)
    if not procedure:
        raise NotFound(
            f"Procedure {procedure_id} not found", entity_type="procedure", entity_id=procedure_id
        )
    return procedure


def require_active_procedure(db: Session, procedure_id: int) -> Procedure:
    procedure = get_procedure(db, procedure_id)
    if not procedure.is_active:
        raise ProcedureUnavailable(
            f"Procedure {procedure.code} is inactive",
            entity_type="procedure",
            entity_id=procedure_id,
        )
    return procedure


def create_procedure(
    db: Session,
    *,
    code: str,
    name: str,
    price_minor: int,
    actor: User,
    is_active: bool = True,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Procedure:
    code = _normalize_code(code)
    name = (name or "").strip()
    if not name:
        raise LedgerCoreError("Procedure name is required", entity_type="procedure")
    price_minor = _validate_price(price_minor)
    _ensure_code_free(db, code)

    procedure = Procedure(
        code=code,
        name=name,
        price_minor=price_minor,
        is_active=is_active,
        created_by_user_id=actor.id,
        updated_by_user_id=actor.id,
    )
    db.add(procedure)
    db.flush()
    log_event(
        db,
        actor=actor,
        action="procedure.created",
        entity_type="procedure",
        entity_id=str(procedure.id),
        after_obj=procedure,
        request_id=request_id,
        ip_address=ip_address,
    )
    logger.info("Procedure %s created (%s)", procedure.code, procedure.price_minor)
    return procedure


def update_procedure(
    db: Session,
    *,
    procedure_id: int,
    changes: dict[str, Any],
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Procedure:
    """Apply catalog edits. Existing treatment items keep their own name and cost."""
    procedure = get_procedure(db, procedure_id)
    before_data = snapshot_model(procedure)

    for field, value in changes.items():
        if field not in _EDITABLE_FIELDS or value is None:
            continue
        if field == "code":
            value = _normalize_code(value)
            _ensure_code_free(db, value, exclude_id=procedure.id)
        elif field == "name":
            value = (value or "").strip()
            if not value:
                raise LedgerCoreError(
                    "Procedure name is required", entity_type="procedure", entity_id=procedure.id
                )
        elif field == "price_minor":
            value = _validate_price(value)
        setattr(procedure, field, value)
    procedure.updated_by_user_id = actor.id
    db.flush()
    db.refresh(procedure)

    log_event(
        db,
        actor=actor,
        action="procedure.updated",
        entity_type="procedure",
        entity_id=str(procedure.id),
        before_data=before_data,
        after_obj=procedure,
        request_id=request_id,
        ip_address=ip_address,
    )
    return procedure


def deactivate_procedure(
    db: Session,
    *,
    procedure_id: int,
    actor: User,
    request_id: str | None = None,
    ip_address: str | None = None,
) -> Procedure:
    """Retire a procedure from the catalog.

    Rows are never removed because treatment items keep a reference to the
    procedure they were planned from.
    """
    procedure = get_procedure(db, procedure_id)
    if not procedure.is_active:
        return procedure
    procedure.is_active = False
    procedure.updated_by_user_id = actor.id
    db.flush()
    log_event(
        db,
        actor=actor,
        action="procedure.deactivated",
        entity_type="procedure",
        entity_id=str(procedure.id),
        after_data={"code": procedure.code, "is_active": False},
        request_id=request_id,
        ip_address=ip_address,
    )
    return procedure
