from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr

from dental_ledger.models.user import Role


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = ""
    role: Role = Role.receptionist


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    role: Role
    is_active: bool
    created_at: datetime
