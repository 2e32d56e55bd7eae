from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base


class TreatmentItemStatus(str, enum.Enum):
    proposed = "proposed"
    in_progress = "in_progress"
    completed = "completed"
    billed = "billed"


OPEN_ITEM_STATUSES = (TreatmentItemStatus.proposed, TreatmentItemStatus.in_progress)


class TreatmentItem(Base, AuditMixin):
    __tablename__ = "treatment_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    tooth_id: Mapped[str] = mapped_column(String(2), nullable=False)
    procedure_id: Mapped[int | None] = mapped_column(
        ForeignKey("procedures.id"), nullable=True, index=True
    )
    procedure_name: Mapped[str] = mapped_column(String(200), nullable=False)
    cost_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[TreatmentItemStatus] = mapped_column(
        Enum(TreatmentItemStatus, name="treatment_item_status"),
        default=TreatmentItemStatus.proposed,
        nullable=False,
    )
    # Approval-batch debit currently carrying this item's provisional charge.
    charge_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id"), nullable=True
    )
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"), nullable=True, index=True
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    patient = relationship("Patient", back_populates="treatment_items")
