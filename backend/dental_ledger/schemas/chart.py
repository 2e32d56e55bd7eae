from pydantic import BaseModel

from dental_ledger.models.chart import ToothStatus


class ToothStatusUpdate(BaseModel):
    status: ToothStatus


class ToothStatusOut(BaseModel):
    tooth_id: str
    status: ToothStatus


class ToothChartOut(BaseModel):
    patient_id: int
    # Only non-healthy teeth are listed.
    teeth: dict[str, ToothStatus]
