"""
Directory Module

Schools and sports governing bodies: who can ask for equipment, who can hand
it over, and where they are.
"""

from gear_share.directory.commands import RegisterGoverningBody, RegisterSchool, RelocateProvider
from gear_share.directory.handlers import DirectoryCommandHandlers
from gear_share.directory.models import (
    ActorRef,
    ActorType,
    Coordinates,
    Location,
    ProviderRef,
    ProviderType,
    SriLankanDistrict,
    SriLankanProvince,
    district_belongs_to_province,
)
from gear_share.directory.projections import (
    GoverningBodyDirectory,
    ProviderDirectory,
    ProviderLookup,
    SchoolDirectory,
)

__all__ = [
    # Commands
    "RegisterSchool",
    "RegisterGoverningBody",
    "RelocateProvider",
    # Handlers
    "DirectoryCommandHandlers",
    # Models
    "ActorRef",
    "ActorType",
    "Coordinates",
    "Location",
    "ProviderRef",
    "ProviderType",
    "SriLankanDistrict",
    "SriLankanProvince",
    "district_belongs_to_province",
    # Projections
    "ProviderLookup",
    "SchoolDirectory",
    "GoverningBodyDirectory",
    "ProviderDirectory",
]
