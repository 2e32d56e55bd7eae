from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcedureCreate(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=200)
    price_minor: int = Field(ge=0)
    is_active: bool = True


class ProcedureUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=32)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price_minor: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ProcedureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    price_minor: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
