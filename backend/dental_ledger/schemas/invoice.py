from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dental_ledger.schemas.actor import ActorOut


class InvoiceCreate(BaseModel):
    patient_id: int
    doctor_id: int
    item_ids: list[int] = Field(min_length=1)
    discount_minor: int = Field(default=0, ge=0)
    notes: Optional[str] = None
    due_date: Optional[date] = None


class InvoiceLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    treatment_item_id: int
    procedure_name: str
    tooth_id: str
    cost_minor: int


class InvoiceSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    patient_id: int
    doctor_id: int
    due_date: Optional[date] = None
    subtotal_minor: int
    discount_minor: int
    total_minor: int
    created_at: datetime


class InvoiceOut(InvoiceSummaryOut):
    notes: Optional[str] = None
    doctor: ActorOut
    created_by: ActorOut
    lines: list[InvoiceLineOut]
