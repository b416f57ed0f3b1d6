"""
Requests Module

The equipment request state machine: schools ask, providers decide, and
delivery closes the loop.
"""

from gear_share.requests.commands import CreateEquipmentRequest, MarkDelivered, RespondToRequest
from gear_share.requests.handlers import RequestCommandHandlers
from gear_share.requests.lifecycle import RequestLifecycleManager
from gear_share.requests.models import (
    ApprovedItem,
    Decision,
    EventInfo,
    RequestItem,
    RequestStatus,
)
from gear_share.requests.projections import RequestRegistry

__all__ = [
    "CreateEquipmentRequest",
    "RespondToRequest",
    "MarkDelivered",
    "RequestCommandHandlers",
    "RequestLifecycleManager",
    "ApprovedItem",
    "Decision",
    "EventInfo",
    "RequestItem",
    "RequestStatus",
    "RequestRegistry",
]
