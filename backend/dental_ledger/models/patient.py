from __future__ import annotations

from datetime import date

from sqlalchemy import Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base


class Patient(Base, AuditMixin):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    tooth_entries = relationship("ToothEntry", back_populates="patient")
    treatment_items = relationship(
        "TreatmentItem", back_populates="patient", order_by="TreatmentItem.id"
    )
    invoices = relationship("Invoice", back_populates="patient", foreign_keys="Invoice.patient_id")
