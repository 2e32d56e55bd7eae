from __future__ import annotations

import enum
from datetime import date

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base


class LedgerEntryType(str, enum.Enum):
    debit = "debit"
    credit = "credit"


class LedgerEntryCategory(str, enum.Enum):
    treatment_start = "treatment_start"
    treatment_revert = "treatment_revert"
    invoice = "invoice"
    charge_release = "charge_release"
    payment = "payment"


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    upi = "upi"
    card = "card"
    insurance = "insurance"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class LedgerEntry(Base, AuditMixin):
    __tablename__ = "ledger_entries"
    __table_args__ = (CheckConstraint("amount_minor > 0", name="ck_ledger_amount_positive"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    entry_type: Mapped[LedgerEntryType] = mapped_column(
        Enum(LedgerEntryType, name="ledger_entry_type"), nullable=False
    )
    category: Mapped[LedgerEntryCategory] = mapped_column(
        Enum(LedgerEntryCategory, name="ledger_entry_category"), nullable=False
    )
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[PaymentMethod | None] = mapped_column(
        Enum(PaymentMethod, name="payment_method"), nullable=True
    )
    reference: Mapped[str | None] = mapped_column(String(120), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    related_invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True, index=True
    )
    related_item_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    patient = relationship("Patient", lazy="joined")
