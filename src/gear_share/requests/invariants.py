"""
Request Invariants

Pure validation functions for the request state machine.

Fun fact: The term 'invariant' comes from mathematics - a property that
survives every transformation. Ours: an approved quantity never exceeds
what was asked for, whatever happens around it.
"""

from datetime import datetime
from typing import Any

from gear_share.kernel.errors import InvalidStateTransition, NotFound, ValidationError
from gear_share.kernel.time import as_utc
from gear_share.requests.models import ApprovedItem, Decision, RequestItem, RequestStatus


def validate_request_exists(request_id: str, request: dict[str, Any] | None) -> dict[str, Any]:
    if request is None:
        raise NotFound("EquipmentRequest", request_id)
    return request


def validate_request_items(items: list[RequestItem]) -> None:
    """
    A request asks for something

    Raises:
        ValidationError: no items, a quantity below 1, or repeated equipment
    """
    if not items:
        raise ValidationError("Request needs at least one item", field="items")
    for item in items:
        if item.quantity_requested < 1:
            raise ValidationError(
                f"Requested quantity must be at least 1 (got {item.quantity_requested} "
                f"for {item.equipment_id})",
                field="quantity_requested",
            )
    equipment_ids = [item.equipment_id for item in items]
    if len(set(equipment_ids)) != len(equipment_ids):
        raise ValidationError("Request items must not repeat equipment", field="items")


def validate_event_window(start: datetime | None, end: datetime | None) -> None:
    """An event cannot end before it starts"""
    if start is not None and end is not None and as_utc(end) < as_utc(start):
        raise ValidationError("Event end date cannot be before its start date", field="end_date")


def validate_event_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Event name cannot be empty", field="event_name")
    return cleaned


def validate_pending(request: dict[str, Any], attempted: str = "respond") -> None:
    """Only a pending request may be decided"""
    if request["status"] != RequestStatus.PENDING.value:
        raise InvalidStateTransition(
            "EquipmentRequest", request["request_id"], request["status"], attempted
        )


def validate_rejection_reason(reason: str | None) -> str:
    """Rejections must say why"""
    if reason is None or not reason.strip():
        raise ValidationError("Rejection requires a reason", field="rejection_reason")
    return reason.strip()


def resolve_approvals(
    request: dict[str, Any],
    decision: Decision,
    approved_items: list[ApprovedItem] | None,
) -> dict[str, int]:
    """
    Map every request line to its approved quantity

    Lines the provider does not mention are approved at 0. An "approved"
    decision without items approves every line in full.

    Raises:
        ValidationError: unknown or repeated line, quantity outside
            [0, requested], or nothing approved at all
    """
    requested = {item["equipment_id"]: item["quantity_requested"] for item in request["items"]}

    if approved_items is None:
        if decision != Decision.APPROVED:
            raise ValidationError(
                "Partial approval must list the approved items", field="approved_items"
            )
        return dict(requested)

    approvals = {equipment_id: 0 for equipment_id in requested}
    seen: set[str] = set()
    for item in approved_items:
        if item.equipment_id not in requested:
            raise ValidationError(
                f"Equipment {item.equipment_id} is not part of request {request['request_id']}",
                field="approved_items",
            )
        if item.equipment_id in seen:
            raise ValidationError(
                f"Equipment {item.equipment_id} approved more than once", field="approved_items"
            )
        seen.add(item.equipment_id)
        limit = requested[item.equipment_id]
        if not 0 <= item.quantity_approved <= limit:
            raise ValidationError(
                f"Approved quantity for {item.equipment_id} must be between 0 and {limit} "
                f"(got {item.quantity_approved})",
                field="quantity_approved",
            )
        approvals[item.equipment_id] = item.quantity_approved

    if sum(approvals.values()) == 0:
        raise ValidationError(
            "Approval commits no equipment; reject the request instead", field="approved_items"
        )
    return approvals


def approval_status(request: dict[str, Any], approvals: dict[str, int]) -> RequestStatus:
    """approved when every line is met in full, partial otherwise"""
    fully_met = all(
        approvals.get(item["equipment_id"], 0) == item["quantity_requested"]
        for item in request["items"]
    )
    return RequestStatus.APPROVED if fully_met else RequestStatus.PARTIAL


def validate_deliverable(request: dict[str, Any]) -> None:
    """Delivery follows an approval"""
    if request["status"] not in (RequestStatus.APPROVED.value, RequestStatus.PARTIAL.value):
        raise InvalidStateTransition(
            "EquipmentRequest", request["request_id"], request["status"], "mark delivered"
        )
