"""
Custom exceptions for Gear Share

A small, closed error taxonomy: every public operation fails with one of
these typed exceptions so callers can tell "fix your input" apart from
"re-fetch and try again".

Fun fact: The first computer bug was an actual moth found in a relay of the
Harvard Mark II computer in 1947. Ours are mostly about missing footballs.
"""


class GearShareError(Exception):
    """Base exception for all Gear Share errors"""

    pass


class EventStoreError(GearShareError):
    """Base class for event store errors"""

    pass


class StreamVersionConflict(EventStoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates concurrent modification - caller should reload and retry.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )


class ValidationError(GearShareError):
    """
    Raised when caller input is malformed

    Examples: empty rejection reason, approved quantity out of range,
    missing rental dates. Never retried.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidStateTransition(GearShareError):
    """
    Raised when an operation targets a record in an ineligible state

    Double approval, returning a permanent transfer, delivering a rejected
    request. The caller must re-fetch current state before deciding again.
    """

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        attempted: str,
        message: str = "",
    ) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            message
            or f"{entity_type} {entity_id} is {current_status}, cannot {attempted}"
        )


class InsufficientInventory(GearShareError):
    """Raised when a reservation exceeds the provider's available quantity"""

    def __init__(
        self,
        provider_key: str,
        equipment_id: str,
        requested: int,
        available: int,
    ) -> None:
        self.provider_key = provider_key
        self.equipment_id = equipment_id
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Provider {provider_key} has {available} of equipment {equipment_id} "
            f"available, {requested} requested (short by {self.shortfall})"
        )


class NotFound(GearShareError):
    """Raised when a referenced record does not exist"""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")
