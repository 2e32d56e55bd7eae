from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dental_ledger.models.treatment_plan import TreatmentItemStatus
from dental_ledger.schemas.actor import ActorOut
from dental_ledger.schemas.ledger import LedgerEntryOut


class TreatmentItemCreate(BaseModel):
    tooth_id: Union[int, str]
    procedure_id: Optional[int] = None
    procedure_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    cost_minor: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _name_and_cost_or_procedure(self):
        if self.procedure_id is None and (self.procedure_name is None or self.cost_minor is None):
            raise ValueError("procedure_name and cost_minor are required without procedure_id")
        return self


class TreatmentItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    tooth_id: str
    procedure_id: Optional[int] = None
    procedure_name: str
    cost_minor: int
    status: TreatmentItemStatus
    charge_entry_id: Optional[int] = None
    invoice_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    created_by: ActorOut


class ApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    patient_id: int
    items: list[TreatmentItemOut]
    amount_minor: int
    entry: Optional[LedgerEntryOut] = None
