"""Bearer token claim schema."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class TokenPayload(BaseModel):
    """Claims the API reads from an access token."""

    sub: UUID = Field(..., description="User id")
    role: Optional[str] = Field(None, description="Role name")
    employee_id: Optional[UUID] = Field(None, description="Employee id")

    @field_validator("role")
    @classmethod
    def normalize_role(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().upper()
        return value or None
