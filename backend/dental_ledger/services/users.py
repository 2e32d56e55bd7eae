from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from dental_ledger.core.errors import NotFound
from dental_ledger.models.user import Role, User


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(User.email == email.lower().strip()))


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.scalar(select(User).where(User.id == user_id))


def require_user(db: Session, user_id: int, *, entity_type: str = "user") -> User:
    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise NotFound(f"User {user_id} not found", entity_type=entity_type, entity_id=user_id)
    return user


def create_user(
    db: Session,
    *,
    email: str,
    full_name: str = "",
    role: Role = Role.receptionist,
    is_active: bool = True,
) -> User:
    user = User(
        email=email.lower().strip(),
        full_name=full_name,
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.flush()
    return user


def seed_initial_admin(db: Session, *, email: str) -> bool:
    if db.scalar(select(User.id).limit(1)) is not None:
        return False
    create_user(db, email=email, full_name="Administrator", role=Role.admin)
    db.commit()
    return True
