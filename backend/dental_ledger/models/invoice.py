from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base


class Invoice(Base, AuditMixin):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    subtotal_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    patient = relationship("Patient", back_populates="invoices", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id], lazy="joined")
    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLine.id",
    )


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id"), nullable=False, index=True)
    # Unique: an item can be billed on one invoice only.
    treatment_item_id: Mapped[int] = mapped_column(
        ForeignKey("treatment_items.id"), nullable=False, unique=True
    )
    procedure_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tooth_id: Mapped[str] = mapped_column(String(2), nullable=False)
    cost_minor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="lines")
