"""
Transaction Projections

Read model of every transaction, rebuilt from Transaction* events.
"""

from collections import Counter
from typing import Any

from gear_share.kernel.events import Event


class TransactionRegistry:
    """
    Transaction registry projection

    Tracks transactions with their items, rental window and status.
    Rebuilt from TransactionApproved, TransactionReturned,
    TransactionCancelled and TransactionCompleted events.
    """

    def __init__(self) -> None:
        self.transactions: dict[str, dict[str, Any]] = {}
        self._by_reference: dict[str, str] = {}
        self._prefix_counts: Counter[str] = Counter()

    def apply_event(self, event: Event) -> None:
        if event.event_type == "TransactionApproved":
            self._apply_approved(event)
        elif event.event_type == "TransactionReturned":
            self._apply_returned(event)
        elif event.event_type == "TransactionCancelled":
            self._apply_status(event, "cancelled", "cancelled_at")
        elif event.event_type == "TransactionCompleted":
            self._apply_status(event, "completed", "completed_at")

    def _apply_approved(self, event: Event) -> None:
        payload = event.payload
        transaction_id = payload["transaction_id"]
        self.transactions[transaction_id] = {
            "transaction_id": transaction_id,
            "reference": payload["reference"],
            "provider": payload["provider"],
            "recipient_school_id": payload["recipient_school_id"],
            "transaction_type": payload["transaction_type"],
            "items": payload["items"],
            "rental_details": payload.get("rental_details"),
            "status": "approved",
            "originating_request_id": payload.get("originating_request_id"),
            "reservation_ids": list(payload.get("reservation_ids", [])),
            "terms": payload.get("terms"),
            "notes": payload.get("notes"),
            "approved_by": payload["approved_by"],
            "approved_at": payload["approved_at"],
            "updated_at": payload["approved_at"],
            "version": event.version,
        }
        self._by_reference[payload["reference"]] = transaction_id
        self._prefix_counts[_prefix_of(payload["reference"])] += 1

    def _apply_returned(self, event: Event) -> None:
        transaction = self.transactions.get(event.payload["transaction_id"])
        if transaction is None:
            return
        transaction["status"] = "returned"
        transaction["rental_details"]["returned_date"] = event.payload["returned_date"]
        transaction["updated_at"] = event.payload["confirmed_at"]
        transaction["version"] = event.version

    def _apply_status(self, event: Event, status: str, timestamp_field: str) -> None:
        transaction = self.transactions.get(event.payload["transaction_id"])
        if transaction is None:
            return
        transaction["status"] = status
        transaction["updated_at"] = event.payload[timestamp_field]
        if event.event_type == "TransactionCancelled":
            transaction["cancellation_reason"] = event.payload.get("reason")
        transaction["version"] = event.version

    def get(self, transaction_id: str) -> dict[str, Any] | None:
        """Get transaction by id or reference (TRF000001, GRT000003, ...)"""
        if transaction_id in self.transactions:
            return self.transactions[transaction_id]
        resolved = self._by_reference.get(transaction_id)
        return self.transactions.get(resolved) if resolved else None

    def list_all(self, status: str | None = None) -> list[dict[str, Any]]:
        return [
            t for t in sorted(self.transactions.values(), key=lambda t: t["approved_at"])
            if status is None or t["status"] == status
        ]

    def list_by_provider(self, provider_key: str, status: str | None = None) -> list[dict[str, Any]]:
        return [
            t for t in self.list_all(status)
            if f"{t['provider']['provider_type']}:{t['provider']['provider_id']}" == provider_key
        ]

    def list_by_recipient(self, school_id: str, status: str | None = None) -> list[dict[str, Any]]:
        return [t for t in self.list_all(status) if t["recipient_school_id"] == school_id]

    def count_with_prefix(self, prefix: str) -> int:
        return self._prefix_counts[prefix]

    def count_by_status(self) -> dict[str, int]:
        return dict(Counter(t["status"] for t in self.transactions.values()))


def _prefix_of(reference: str) -> str:
    return reference.rstrip("0123456789")
