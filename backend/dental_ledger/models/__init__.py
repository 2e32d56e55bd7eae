from dental_ledger.models.base import Base
from dental_ledger.models.user import Role, User
from dental_ledger.models.audit_log import AuditLog
from dental_ledger.models.patient import Patient
from dental_ledger.models.chart import FDI_TOOTH_IDS, ToothEntry, ToothStatus
from dental_ledger.models.procedure import Procedure
from dental_ledger.models.treatment_plan import TreatmentItem, TreatmentItemStatus
from dental_ledger.models.invoice import Invoice, InvoiceLine
from dental_ledger.models.ledger import (
    LedgerEntry,
    LedgerEntryCategory,
    LedgerEntryType,
    PaymentMethod,
)

__all__ = [
    "Base",
    "Role",
    "User",
    "AuditLog",
    "Patient",
    "FDI_TOOTH_IDS",
    "ToothEntry",
    "ToothStatus",
    "Procedure",
    "TreatmentItem",
    "TreatmentItemStatus",
    "Invoice",
    "InvoiceLine",
    "LedgerEntry",
    "LedgerEntryCategory",
    "LedgerEntryType",
    "PaymentMethod",
]
