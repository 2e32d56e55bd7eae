from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from dental_ledger.db.session import SessionLocal
from dental_ledger.models.invoice import Invoice, InvoiceLine
from dental_ledger.models.ledger import LedgerEntry, LedgerEntryCategory, LedgerEntryType
from dental_ledger.models.patient import Patient
from dental_ledger.models.treatment_plan import TreatmentItem, TreatmentItemStatus
from dental_ledger.services.ledger import balance_of


@dataclass
class VerifyReport:
    patients_checked: int = 0
    balances: dict[int, int] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def check_billed_items(session: Session, patient_id: int, report: VerifyReport) -> None:
    line_counts = dict(
        session.execute(
            select(InvoiceLine.treatment_item_id, func.count(InvoiceLine.id))
            .join(Invoice, Invoice.id == InvoiceLine.invoice_id)
            .where(Invoice.patient_id == patient_id)
            .group_by(InvoiceLine.treatment_item_id)
        ).all()
    )
    items = session.scalars(select(TreatmentItem).where(TreatmentItem.patient_id == patient_id))
    for item in items:
        count = line_counts.get(item.id, 0)
        if item.status == TreatmentItemStatus.billed and count != 1:
            report.issues.append(
                f"patient {patient_id}: billed item {item.id} appears on {count} invoices"
            )
        if item.status != TreatmentItemStatus.billed and count:
            report.issues.append(
                f"patient {patient_id}: item {item.id} is {item.status.value} but invoiced"
            )
        if item.status == TreatmentItemStatus.proposed and item.charge_entry_id is not None:
            report.issues.append(
                f"patient {patient_id}: proposed item {item.id} still carries a provisional charge"
            )


def check_invoice_debits(session: Session, patient_id: int, report: VerifyReport) -> None:
    invoices = session.scalars(select(Invoice).where(Invoice.patient_id == patient_id))
    for invoice in invoices:
        debits = list(
            session.scalars(
                select(LedgerEntry).where(
                    LedgerEntry.related_invoice_id == invoice.id,
                    LedgerEntry.entry_type == LedgerEntryType.debit,
                    LedgerEntry.category == LedgerEntryCategory.invoice,
                )
            )
        )
        expected = 1 if invoice.total_minor > 0 else 0
        if len(debits) != expected:
            report.issues.append(
                f"patient {patient_id}: invoice {invoice.invoice_number} has "
                f"{len(debits)} invoice debits (expected {expected})"
            )
        elif debits and debits[0].amount_minor != invoice.total_minor:
            report.issues.append(
                f"patient {patient_id}: invoice {invoice.invoice_number} debit "
                f"{debits[0].amount_minor} != total {invoice.total_minor}"
            )


def verify(session: Session, patient_id: int | None = None) -> VerifyReport:
    report = VerifyReport()
    stmt = select(Patient.id).order_by(Patient.id)
    if patient_id is not None:
        stmt = stmt.where(Patient.id == patient_id)
    for pid in session.scalars(stmt):
        report.patients_checked += 1
        check_billed_items(session, pid, report)
        check_invoice_debits(session, pid, report)
        report.balances[pid] = balance_of(session, pid)
    return report


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check treatment items, invoices and ledger entries are consistent."
    )
    parser.add_argument("--patient-id", type=int, default=None)
    parser.add_argument("--quiet", action="store_true", help="Only print issues.")
    args = parser.parse_args(argv)

    session = SessionLocal()
    try:
        report = verify(session, patient_id=args.patient_id)
    finally:
        session.close()

    if not args.quiet:
        for pid, balance in report.balances.items():
            print(f"patient {pid}: balance {balance}")
    for issue in report.issues:
        print(f"ISSUE {issue}")
    print(f"Checked {report.patients_checked} patients, {len(report.issues)} issues.")
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
