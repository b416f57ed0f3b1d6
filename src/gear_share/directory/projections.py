"""
Directory Projections

Read models of schools and governing bodies, each behind the same lookup
capability so provider handling never branches on ad hoc string checks.
"""

from typing import Any, Protocol

from gear_share.directory.models import Location, ProviderRef, ProviderType
from gear_share.kernel.events import Event


class ProviderLookup(Protocol):
    """Lookup capability implemented once per provider kind"""

    provider_type: ProviderType

    def get(self, provider_id: str) -> dict[str, Any] | None:
        ...

    def location_of(self, provider_id: str) -> Location | None:
        ...


class _LocatedRegistry:
    """Shared storage and location parsing for directory projections"""

    provider_type: ProviderType
    id_field: str

    def __init__(self) -> None:
        self.entries: dict[str, dict[str, Any]] = {}

    def get(self, provider_id: str) -> dict[str, Any] | None:
        return self.entries.get(provider_id)

    def list_all(self) -> list[dict[str, Any]]:
        return sorted(self.entries.values(), key=lambda e: e["registered_at"])

    def location_of(self, provider_id: str) -> Location | None:
        entry = self.entries.get(provider_id)
        if not entry or not entry.get("location"):
            return None
        return Location.model_validate(entry["location"])

    def _apply_relocated(self, event: Event) -> None:
        entry = self.entries.get(event.payload[self.id_field])
        if entry is None:
            return
        entry["location"] = event.payload["location"]
        entry["version"] = event.version


class SchoolDirectory(_LocatedRegistry):
    """
    School directory projection

    Rebuilt from SchoolRegistered and SchoolRelocated events.
    """

    provider_type = ProviderType.SCHOOL
    id_field = "school_id"

    def apply_event(self, event: Event) -> None:
        if event.event_type == "SchoolRegistered":
            payload = event.payload
            self.entries[payload["school_id"]] = {
                "school_id": payload["school_id"],
                "name": payload["name"],
                "location": payload["location"],
                "principal_name": payload.get("principal_name"),
                "contact_email": payload.get("contact_email"),
                "registered_at": payload["registered_at"],
                "version": event.version,
            }
        elif event.event_type == "SchoolRelocated":
            self._apply_relocated(event)

    def list_in_district(self, district: str) -> list[dict[str, Any]]:
        """Schools registered in a district"""
        return [
            s for s in self.list_all() if (s.get("location") or {}).get("district") == district
        ]


class GoverningBodyDirectory(_LocatedRegistry):
    """
    Governing body directory projection

    Rebuilt from GoverningBodyRegistered and GoverningBodyRelocated events.
    """

    provider_type = ProviderType.GOVERNING_BODY
    id_field = "governing_body_id"

    def apply_event(self, event: Event) -> None:
        if event.event_type == "GoverningBodyRegistered":
            payload = event.payload
            self.entries[payload["governing_body_id"]] = {
                "governing_body_id": payload["governing_body_id"],
                "name": payload["name"],
                "abbreviation": payload.get("abbreviation"),
                "specialized_sport_ids": list(payload.get("specialized_sport_ids", [])),
                "location": payload.get("location"),
                "contact_email": payload.get("contact_email"),
                "registered_at": payload["registered_at"],
                "version": event.version,
            }
        elif event.event_type == "GoverningBodyRelocated":
            self._apply_relocated(event)

    def specialized_sports(self, governing_body_id: str) -> list[str]:
        entry = self.entries.get(governing_body_id)
        return list(entry["specialized_sport_ids"]) if entry else []


class ProviderDirectory:
    """Resolves a ProviderRef through the lookup for its kind"""

    def __init__(self, schools: SchoolDirectory, governing_bodies: GoverningBodyDirectory):
        self.schools = schools
        self.governing_bodies = governing_bodies
        self._lookups: dict[ProviderType, ProviderLookup] = {
            ProviderType.SCHOOL: schools,
            ProviderType.GOVERNING_BODY: governing_bodies,
        }

    def lookup_for(self, provider_type: ProviderType) -> ProviderLookup:
        return self._lookups[provider_type]

    def resolve(self, provider: ProviderRef) -> dict[str, Any] | None:
        return self.lookup_for(provider.provider_type).get(provider.provider_id)

    def location_of(self, provider: ProviderRef) -> Location | None:
        return self.lookup_for(provider.provider_type).location_of(provider.provider_id)

    def apply_event(self, event: Event) -> None:
        if event.stream_type == "School":
            self.schools.apply_event(event)
        elif event.stream_type == "GoverningBody":
            self.governing_bodies.apply_event(event)
