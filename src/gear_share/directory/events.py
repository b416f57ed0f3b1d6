"""
Directory Events

Immutable facts about schools and governing bodies joining or moving.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SchoolRegistered(BaseModel):
    """School joined the exchange"""

    school_id: str
    name: str
    location: dict[str, Any] = Field(..., description="Serialized Location")
    principal_name: str | None = None
    contact_email: str | None = None
    registered_at: datetime


class GoverningBodyRegistered(BaseModel):
    """Governing body joined the exchange"""

    governing_body_id: str
    name: str
    abbreviation: str | None = None
    specialized_sport_ids: list[str] = Field(default_factory=list)
    location: dict[str, Any] | None = None
    contact_email: str | None = None
    registered_at: datetime


class SchoolRelocated(BaseModel):
    """School location changed"""

    school_id: str
    location: dict[str, Any]
    relocated_at: datetime


class GoverningBodyRelocated(BaseModel):
    """Governing body location changed"""

    governing_body_id: str
    location: dict[str, Any]
    relocated_at: datetime
