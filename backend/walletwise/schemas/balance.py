from pydantic import BaseModel


class DriftOut(BaseModel):
    user_id: int
    old: float
    new: float


class ReconcileOut(BaseModel):
    checked: int
    corrected: list[DriftOut]
