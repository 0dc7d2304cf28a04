# backend/agenda/schemas/common.py

from typing import Any, Optional
from pydantic import BaseModel


class UserRead(BaseModel):
    id: int
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = {"from_attributes": True}


class ProfessionalRead(BaseModel):
    professional_id: int
    user_id: int
    license_number: str
    specialization: Optional[str] = None
    user: Optional[UserRead] = None

    model_config = {"from_attributes": True}


class BulkFailureRead(BaseModel):
    """One rejected item of a best-effort bulk operation."""
    index: int
    input: dict[str, Any]
    error: str
