"""
Donation Projections
"""

from collections import Counter
from typing import Any

from gear_share.donations.models import DonationStatus
from gear_share.kernel.events import Event


class DonationRegistry:
    """
    Donation registry projection

    Rebuilt from DonationCreated and DonationCancelled events.
    """

    def __init__(self) -> None:
        self.donations: dict[str, dict[str, Any]] = {}
        self._by_reference: dict[str, str] = {}
        self._prefix_counts: Counter[str] = Counter()

    def apply_event(self, event: Event) -> None:
        if event.event_type == "DonationCreated":
            payload = event.payload
            donation_id = payload["donation_id"]
            self.donations[donation_id] = {
                **payload,
                "status": DonationStatus.PENDING.value,
                "cancellation_reason": None,
                "updated_at": payload["created_at"],
                "version": event.version,
            }
            self._by_reference[payload["reference"]] = donation_id
            self._prefix_counts[payload["reference"].rstrip("0123456789")] += 1
        elif event.event_type == "DonationCancelled":
            donation = self.donations.get(event.payload["donation_id"])
            if donation is None:
                return
            donation["status"] = DonationStatus.CANCELLED.value
            donation["cancellation_reason"] = event.payload["reason"]
            donation["updated_at"] = event.payload["cancelled_at"]
            donation["version"] = event.version

    def get(self, donation_id: str) -> dict[str, Any] | None:
        """Get donation by id or reference (DON-E000001, DON-M000002)"""
        if donation_id in self.donations:
            return self.donations[donation_id]
        resolved = self._by_reference.get(donation_id)
        return self.donations.get(resolved) if resolved else None

    def list_for_request(self, request_id: str) -> list[dict[str, Any]]:
        return sorted(
            (d for d in self.donations.values() if d["request_id"] == request_id),
            key=lambda d: d["created_at"],
        )

    def count_with_prefix(self, prefix: str) -> int:
        return self._prefix_counts[prefix]
