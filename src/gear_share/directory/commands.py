"""
Directory Commands

Intentions to register or move schools and governing bodies.
"""

from pydantic import BaseModel, Field

from gear_share.directory.models import Location, ProviderType


class RegisterSchool(BaseModel):
    """Register a school that can request and lend equipment"""

    name: str = Field(..., min_length=1, description="School name")
    location: Location = Field(..., description="District, province and coordinates")
    principal_name: str | None = Field(default=None, description="Principal's name")
    contact_email: str | None = Field(default=None, description="Contact address")


class RegisterGoverningBody(BaseModel):
    """Register a sports governing body specialised in some sports"""

    name: str = Field(..., min_length=1, description="Governing body name")
    abbreviation: str | None = Field(default=None, description="Short name, e.g. SLC")
    specialized_sport_ids: list[str] = Field(
        default_factory=list, description="Sports this body is responsible for"
    )
    location: Location | None = Field(default=None, description="Head office location")
    contact_email: str | None = Field(default=None, description="Contact address")


class RelocateProvider(BaseModel):
    """Record a new location for a school or governing body"""

    provider_type: ProviderType
    provider_id: str = Field(..., min_length=1)
    location: Location
