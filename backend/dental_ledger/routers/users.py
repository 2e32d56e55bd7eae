from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.deps import get_current_user, require_admin
from dental_ledger.models.user import User
from dental_ledger.schemas.user import UserCreate, UserOut
from dental_ledger.services.audit import log_event
from dental_ledger.services.users import create_user, get_user_by_email

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return list(db.scalars(select(User).order_by(User.id)))


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def add_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    existing = get_user_by_email(db, payload.email)
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    user = create_user(
        db,
        email=payload.email,
        full_name=payload.full_name,
        role=payload.role,
    )
    log_event(
        db,
        actor=admin,
        action="user.created",
        entity_type="user",
        entity_id=str(user.id),
        after_data={"email": user.email, "role": user.role.value},
    )
    db.commit()
    db.refresh(user)
    return user
