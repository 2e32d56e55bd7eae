from pydantic import BaseModel, ConfigDict

from dental_ledger.models.user import Role


class ActorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    role: Role
