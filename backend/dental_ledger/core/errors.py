from __future__ import annotations

from collections.abc import Iterable

from fastapi import status


class LedgerCoreError(Exception):
    """Base class for validation failures raised by the service layer.

    Every failure names the entity it concerns so the calling layer can tell
    the user which record or operation was rejected. None of these leave
    partial state behind once the surrounding transaction is rolled back.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    error = "ledger_error"

    def __init__(
        self,
        detail: str,
        *,
        entity_type: str | None = None,
        entity_id: int | str | None = None,
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.entity_type = entity_type
        self.entity_id = None if entity_id is None else str(entity_id)


class NotFound(LedgerCoreError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class ItemNotFound(NotFound):
    error = "item_not_found"

    def __init__(self, item_id: int) -> None:
        super().__init__(
            f"Treatment item {item_id} not found",
            entity_type="treatment_item",
            entity_id=item_id,
        )


class InvalidToothId(LedgerCoreError):
    error = "invalid_tooth_id"

    def __init__(self, tooth_id: object) -> None:
        super().__init__(
            f"Invalid tooth id {tooth_id!r}; expected FDI 11-18, 21-28, 31-38 or 41-48",
            entity_type="tooth",
            entity_id=str(tooth_id),
        )


class InvalidAmount(LedgerCoreError):
    error = "invalid_amount"


class InvalidTransition(LedgerCoreError):
    status_code = status.HTTP_409_CONFLICT
    error = "invalid_transition"


class NothingToApprove(LedgerCoreError):
    status_code = status.HTTP_409_CONFLICT
    error = "nothing_to_approve"

    def __init__(self, patient_id: int) -> None:
        super().__init__(
            "Nothing to approve: no proposed treatment items",
            entity_type="patient",
            entity_id=patient_id,
        )


class ItemNotBillable(LedgerCoreError):
    status_code = status.HTTP_409_CONFLICT
    error = "item_not_billable"

    def __init__(self, detail: str, item_ids: Iterable[int] = ()) -> None:
        self.item_ids = sorted(item_ids)
        super().__init__(
            detail,
            entity_type="treatment_item",
            entity_id=",".join(str(item_id) for item_id in self.item_ids) or None,
        )


class ConcurrentModification(LedgerCoreError):
    status_code = status.HTTP_409_CONFLICT
    error = "concurrent_modification"


class InvalidToothStatus(LedgerCoreError):
    error = "invalid_tooth_status"

    def __init__(self, value: object, *, tooth_id: str | None = None) -> None:
        super().__init__(
            f"Invalid tooth status {value!r}",
            entity_type="tooth",
            entity_id=tooth_id,
        )


class InvalidPaymentMethod(LedgerCoreError):
    error = "invalid_payment_method"


class ProcedureUnavailable(LedgerCoreError):
    status_code = status.HTTP_409_CONFLICT
    error = "procedure_unavailable"


class DuplicateProcedureCode(LedgerCoreError):
    status_code = status.HTTP_409_CONFLICT
    error = "duplicate_procedure_code"
