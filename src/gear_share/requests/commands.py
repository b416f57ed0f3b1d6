"""
Request Commands

Intentions expressed by schools (create) and providers (respond, deliver).
"""

from pydantic import BaseModel, Field

from gear_share.requests.models import ApprovedItem, Decision, EventInfo, RequestItem


class CreateEquipmentRequest(BaseModel):
    """School asks for equipment for an event"""

    requester_school_id: str
    event: EventInfo
    items: list[RequestItem] = Field(default_factory=list)


class RespondToRequest(BaseModel):
    """
    Provider decision on a pending request

    approved_items may be omitted for an "approved" decision, meaning every
    line in full.
    """

    request_id: str
    decision: Decision
    approved_items: list[ApprovedItem] | None = None
    rejection_reason: str | None = None
    notes: str | None = None


class MarkDelivered(BaseModel):
    """Approved equipment reached the requesting school"""

    request_id: str
