"""
Kernel - Core event sourcing infrastructure

Everything the equipment exchange builds upon: immutable events, the
append-only store with optimistic stream versions, typed errors, keyed
locks, the notification bus and the exchange policy.

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. A returned rental here is exactly that.
"""

from gear_share.kernel.bus import InProcessBus, Notifier
from gear_share.kernel.errors import (
    EventStoreError,
    GearShareError,
    InsufficientInventory,
    InvalidStateTransition,
    NotFound,
    StreamVersionConflict,
    ValidationError,
)
from gear_share.kernel.event_store import SQLiteEventStore
from gear_share.kernel.events import Event, create_event
from gear_share.kernel.ids import format_reference, generate_id
from gear_share.kernel.locks import KeyedLocks
from gear_share.kernel.policy import ExchangePolicy
from gear_share.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "generate_id",
    "format_reference",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & storage
    "Event",
    "create_event",
    "SQLiteEventStore",
    "InProcessBus",
    "Notifier",
    "KeyedLocks",
    "ExchangePolicy",
    # Errors
    "GearShareError",
    "EventStoreError",
    "StreamVersionConflict",
    "ValidationError",
    "InvalidStateTransition",
    "InsufficientInventory",
    "NotFound",
]
