from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dental_ledger.models.ledger import LedgerEntryCategory, LedgerEntryType, PaymentMethod
from dental_ledger.schemas.actor import ActorOut


class LedgerEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    entry_type: LedgerEntryType
    category: LedgerEntryCategory
    amount_minor: int
    description: str
    entry_date: date
    method: Optional[PaymentMethod] = None
    reference: Optional[str] = None
    note: Optional[str] = None
    related_invoice_id: Optional[int] = None
    related_item_id: Optional[int] = None
    created_at: datetime
    created_by: ActorOut


class LedgerPaymentCreate(BaseModel):
    amount_minor: int = Field(gt=0)
    method: PaymentMethod
    notes: Optional[str] = None
    reference: Optional[str] = Field(default=None, max_length=120)
    related_invoice_id: Optional[int] = None


class StatementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    patient_id: int
    entries: list[LedgerEntryOut]
    total_debits_minor: int
    total_credits_minor: int
    balance_minor: int


class BalanceOut(BaseModel):
    patient_id: int
    balance_minor: int
    currency: str
