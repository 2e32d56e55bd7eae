from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from dental_ledger.db.session import get_db
from dental_ledger.models.user import Role, User
from dental_ledger.services.users import get_user_by_id


def get_current_user(
    db: Session = Depends(get_db), x_user_id: str | None = Header(default=None)
) -> User:
    """Resolve the acting staff member forwarded by the calling layer.

    Authentication happens upstream; this only checks the id names an active user.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id")

    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != Role.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
