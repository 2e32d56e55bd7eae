from __future__ import annotations

import enum

from sqlalchemy import Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dental_ledger.models.base import AuditMixin, Base

# FDI two-digit notation: quadrant 1-4, position 1-8.
FDI_TOOTH_IDS: tuple[str, ...] = tuple(
    f"{quadrant}{position}" for quadrant in range(1, 5) for position in range(1, 9)
)


class ToothStatus(str, enum.Enum):
    healthy = "healthy"
    decayed = "decayed"
    planned = "planned"
    completed = "completed"
    missing = "missing"


class ToothEntry(Base, AuditMixin):
    __tablename__ = "tooth_entries"
    __table_args__ = (UniqueConstraint("patient_id", "tooth_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    tooth_id: Mapped[str] = mapped_column(String(2), nullable=False)
    status: Mapped[ToothStatus] = mapped_column(
        Enum(ToothStatus, name="tooth_status"), nullable=False
    )

    patient = relationship("Patient", back_populates="tooth_entries")
