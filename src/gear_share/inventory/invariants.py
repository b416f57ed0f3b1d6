"""
Inventory Invariants

Pure validation functions for catalog entries and quantity movements.
"""

from typing import Any

from gear_share.kernel.errors import (
    InsufficientInventory,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)


def validate_equipment_exists(equipment_id: str, entry: dict[str, Any] | None) -> dict[str, Any]:
    """Resolve a catalog entry or fail with NotFound"""
    if entry is None:
        raise NotFound("Equipment", equipment_id)
    return entry


def validate_positive_quantity(quantity: int, field: str = "quantity") -> None:
    """Stock and reservation movements are whole positive units"""
    if quantity < 1:
        raise ValidationError(f"{field} must be at least 1 (got {quantity})", field=field)


def validate_sufficient_inventory(
    provider_key: str, equipment_id: str, requested: int, available: int
) -> None:
    """A reservation may not take more than is available"""
    if requested > available:
        raise InsufficientInventory(provider_key, equipment_id, requested, available)


def validate_reservation_open(reservation_id: str, reservation: dict[str, Any] | None) -> dict[str, Any]:
    """Only an open reservation can be released"""
    if reservation is None:
        raise NotFound("Reservation", reservation_id)
    if reservation["status"] != "open":
        raise InvalidStateTransition(
            "Reservation", reservation_id, reservation["status"], "release"
        )
    return reservation


def validate_not_blank(value: str, field: str) -> str:
    """Catalog text fields are trimmed and must not be blank"""
    cleaned = value.strip()
    if not cleaned:
        raise ValidationError(f"{field} cannot be empty", field=field)
    return cleaned
