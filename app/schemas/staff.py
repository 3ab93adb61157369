import uuid
from pydantic import BaseModel, ConfigDict, Field

from app.models.staff import StaffRole


class StaffRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=100)
    role: StaffRole
    enabled: bool = True


class EnabledUpdate(BaseModel):
    enabled: bool


class StaffResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    full_name: str
    role: StaffRole
    enabled: bool
