"""
Request Projections

Read model of equipment requests, rebuilt from EquipmentRequest* events.
"""

from collections import Counter
from typing import Any

from gear_share.kernel.events import Event


class RequestRegistry:
    """
    Request registry projection

    Tracks every request with its items, decision and delivery.
    Events at or below a request's known version are ignored so a stream
    can be caught up from the store after a concurrent write.
    """

    def __init__(self) -> None:
        self.requests: dict[str, dict[str, Any]] = {}
        self._by_reference: dict[str, str] = {}

    def apply_event(self, event: Event) -> None:
        if event.stream_type != "EquipmentRequest":
            return
        existing = self.requests.get(event.stream_id)
        if existing is not None and event.version <= existing["version"]:
            return

        if event.event_type == "EquipmentRequestCreated":
            self._apply_created(event)
        elif event.event_type == "EquipmentRequestApproved":
            self._apply_approved(event)
        elif event.event_type == "EquipmentRequestRejected":
            self._apply_rejected(event)
        elif event.event_type == "EquipmentRequestDelivered":
            self._apply_delivered(event)

    def _apply_created(self, event: Event) -> None:
        payload = event.payload
        self.requests[payload["request_id"]] = {
            "request_id": payload["request_id"],
            "reference": payload["reference"],
            "requester_school_id": payload["requester_school_id"],
            "event_name": payload["event_name"],
            "event_start": payload.get("event_start"),
            "event_end": payload.get("event_end"),
            "description": payload.get("description", ""),
            "items": [dict(item, quantity_approved=None) for item in payload["items"]],
            "status": "pending",
            "rejection_reason": None,
            "provider": None,
            "processed_by": None,
            "processed_at": None,
            "notes": None,
            "transaction_ids": [],
            "donation_id": None,
            "delivered_at": None,
            "created_by": payload["created_by"],
            "created_at": payload["created_at"],
            "updated_at": payload["created_at"],
            "version": event.version,
        }
        self._by_reference[payload["reference"]] = payload["request_id"]

    def _apply_approved(self, event: Event) -> None:
        request = self.requests.get(event.payload["request_id"])
        if request is None:
            return
        payload = event.payload
        request["status"] = payload["status"]
        request["items"] = [dict(item) for item in payload["items"]]
        request["provider"] = payload.get("provider")
        if payload.get("transaction_id"):
            request["transaction_ids"].append(payload["transaction_id"])
        request["donation_id"] = payload.get("donation_id")
        request["notes"] = payload.get("notes")
        request["processed_by"] = payload["processed_by"]
        request["processed_at"] = payload["processed_at"]
        request["updated_at"] = payload["processed_at"]
        request["version"] = event.version

    def _apply_rejected(self, event: Event) -> None:
        request = self.requests.get(event.payload["request_id"])
        if request is None:
            return
        payload = event.payload
        request["status"] = "rejected"
        request["rejection_reason"] = payload["rejection_reason"]
        request["notes"] = payload.get("notes")
        request["processed_by"] = payload["processed_by"]
        request["processed_at"] = payload["processed_at"]
        request["updated_at"] = payload["processed_at"]
        request["version"] = event.version

    def _apply_delivered(self, event: Event) -> None:
        request = self.requests.get(event.payload["request_id"])
        if request is None:
            return
        request["status"] = "delivered"
        request["delivered_at"] = event.payload["delivered_at"]
        request["updated_at"] = event.payload["delivered_at"]
        request["version"] = event.version

    def get(self, request_id: str) -> dict[str, Any] | None:
        """Get request by id or REQ reference"""
        if request_id in self.requests:
            return self.requests[request_id]
        resolved = self._by_reference.get(request_id)
        return self.requests.get(resolved) if resolved else None

    def list_all(self, statuses: list[str] | None = None) -> list[dict[str, Any]]:
        return [
            r for r in sorted(self.requests.values(), key=lambda r: r["reference"])
            if statuses is None or r["status"] in statuses
        ]

    def list_by_school(self, school_id: str, statuses: list[str] | None = None) -> list[dict[str, Any]]:
        return [r for r in self.list_all(statuses) if r["requester_school_id"] == school_id]

    def version_of(self, request_id: str) -> int:
        request = self.requests.get(request_id)
        return request["version"] if request else 0

    def count(self) -> int:
        return len(self.requests)

    def count_by_status(self) -> dict[str, int]:
        return dict(Counter(r["status"] for r in self.requests.values()))
