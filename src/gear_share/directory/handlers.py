"""
Directory Command Handlers

Transform directory commands into events after validation.
"""

from typing import Any

from gear_share.directory import commands, events, invariants
from gear_share.directory.models import ProviderRef, ProviderType
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import generate_id
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import TimeProvider


class DirectoryCommandHandlers:
    """
    Command handlers for schools and governing bodies

    Stateless handlers: receive command, validate, emit events.
    All state queries done via projections passed as parameters.
    """

    def __init__(self, time_provider: TimeProvider, policy: ExchangePolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_register_school(
        self,
        command: commands.RegisterSchool,
        command_id: str,
        actor_id: str,
    ) -> list[Event]:
        """Register a school, returning the SchoolRegistered event"""
        now = self.time_provider.now()
        school_id = generate_id()

        payload = events.SchoolRegistered(
            school_id=school_id,
            name=invariants.validate_name(command.name),
            location=command.location.model_dump(mode="json"),
            principal_name=command.principal_name,
            contact_email=command.contact_email,
            registered_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="SchoolRegistered",
                stream_id=school_id,
                stream_type="School",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=1,
            )
        ]

    def handle_register_governing_body(
        self,
        command: commands.RegisterGoverningBody,
        command_id: str,
        actor_id: str,
    ) -> list[Event]:
        """Register a governing body with its specialised sports"""
        now = self.time_provider.now()
        governing_body_id = generate_id()

        payload = events.GoverningBodyRegistered(
            governing_body_id=governing_body_id,
            name=invariants.validate_name(command.name),
            abbreviation=command.abbreviation,
            specialized_sport_ids=invariants.validate_sport_ids(command.specialized_sport_ids),
            location=command.location.model_dump(mode="json") if command.location else None,
            contact_email=command.contact_email,
            registered_at=now,
        ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type="GoverningBodyRegistered",
                stream_id=governing_body_id,
                stream_type="GoverningBody",
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=1,
            )
        ]

    def handle_relocate_provider(
        self,
        command: commands.RelocateProvider,
        command_id: str,
        actor_id: str,
        directory: Any,  # ProviderDirectory projection
    ) -> list[Event]:
        """
        Move a school or governing body

        Emits SchoolRelocated or GoverningBodyRelocated on the provider's
        own stream so distance caches can be invalidated.
        """
        now = self.time_provider.now()
        provider = ProviderRef(
            provider_type=command.provider_type, provider_id=command.provider_id
        )
        entry = invariants.validate_provider_exists(provider, directory.resolve(provider))
        location = command.location.model_dump(mode="json")

        if provider.provider_type == ProviderType.SCHOOL:
            event_type = "SchoolRelocated"
            stream_type = "School"
            payload = events.SchoolRelocated(
                school_id=provider.provider_id, location=location, relocated_at=now
            ).model_dump(mode="json")
        else:
            event_type = "GoverningBodyRelocated"
            stream_type = "GoverningBody"
            payload = events.GoverningBodyRelocated(
                governing_body_id=provider.provider_id, location=location, relocated_at=now
            ).model_dump(mode="json")

        return [
            create_event(
                event_id=generate_id(),
                event_type=event_type,
                stream_id=provider.provider_id,
                stream_type=stream_type,
                occurred_at=now,
                actor_id=actor_id,
                command_id=command_id,
                payload=payload,
                version=entry["version"] + 1,
            )
        ]
