"""
Directory Invariants

Pure validation functions for directory entries and provider references.
"""

from typing import Any

from gear_share.directory.models import ProviderRef, ProviderType
from gear_share.kernel.errors import NotFound, ValidationError


def validate_name(name: str, field: str = "name") -> str:
    """Names are trimmed and must not be blank"""
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError(f"{field} cannot be empty", field=field)
    return cleaned


def validate_sport_ids(sport_ids: list[str]) -> list[str]:
    """Specialised sports are distinct and non-blank"""
    cleaned = [s.strip() for s in sport_ids]
    if any(not s for s in cleaned):
        raise ValidationError("Sport ids cannot be empty", field="specialized_sport_ids")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError(
            "Specialised sports must not repeat", field="specialized_sport_ids"
        )
    return cleaned


def validate_provider_exists(provider: ProviderRef, entry: dict[str, Any] | None) -> dict[str, Any]:
    """Resolve a provider reference or fail with NotFound"""
    if entry is None:
        entity = "School" if provider.provider_type == ProviderType.SCHOOL else "GoverningBody"
        raise NotFound(entity, provider.provider_id)
    return entry


def validate_not_self_supply(provider: ProviderRef, recipient_school_id: str) -> None:
    """A school cannot lend to itself"""
    if (
        provider.provider_type == ProviderType.SCHOOL
        and provider.provider_id == recipient_school_id
    ):
        raise ValidationError(
            "A school cannot provide equipment to itself", field="provider"
        )
