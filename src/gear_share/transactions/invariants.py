"""
Transaction Invariants

Pure validation functions for transactions and their rental sub-lifecycle.
"""

from datetime import datetime
from typing import Any

from gear_share.kernel.errors import InvalidStateTransition, NotFound, ValidationError
from gear_share.kernel.time import as_utc, parse_timestamp
from gear_share.transactions.models import TransactionItem, TransactionStatus, TransactionType


def validate_transaction_exists(
    transaction_id: str, transaction: dict[str, Any] | None
) -> dict[str, Any]:
    if transaction is None:
        raise NotFound("Transaction", transaction_id)
    return transaction


def validate_rental_window(
    transaction_type: TransactionType,
    start_date: datetime | None,
    return_due_date: datetime | None,
) -> None:
    """
    Rentals need a start date and a strictly later due date

    Raises:
        ValidationError: if either date is missing or the window is empty
    """
    if transaction_type != TransactionType.RENTAL:
        return
    if start_date is None:
        raise ValidationError("Rental requires a start date", field="start_date")
    if return_due_date is None:
        raise ValidationError("Rental requires a return due date", field="return_due_date")
    if as_utc(return_due_date) <= as_utc(start_date):
        raise ValidationError(
            "Return due date must be after the start date", field="return_due_date"
        )


def validate_rental_details_match_type(
    transaction_type: TransactionType, rental_details: Any
) -> None:
    """Rental details are present exactly when the transaction is a rental"""
    if transaction_type == TransactionType.RENTAL and rental_details is None:
        raise ValidationError("Rental transactions need rental details", field="rental_details")
    if transaction_type == TransactionType.PERMANENT and rental_details is not None:
        raise ValidationError(
            "Permanent transfers cannot carry rental details", field="rental_details"
        )


def validate_items(items: list[TransactionItem]) -> None:
    """At least one line, each equipment at most once"""
    if not items:
        raise ValidationError("Transaction needs at least one item", field="items")
    equipment_ids = [item.equipment_id for item in items]
    if len(set(equipment_ids)) != len(equipment_ids):
        raise ValidationError("Transaction items must not repeat equipment", field="items")


def validate_status(
    transaction: dict[str, Any], allowed: set[TransactionStatus], attempted: str
) -> None:
    """Operation is only valid from some statuses"""
    if transaction["status"] not in {s.value for s in allowed}:
        raise InvalidStateTransition(
            "Transaction", transaction["transaction_id"], transaction["status"], attempted
        )


def validate_returnable(transaction: dict[str, Any]) -> None:
    """Only approved rentals can come back"""
    if transaction["transaction_type"] != TransactionType.RENTAL.value:
        raise InvalidStateTransition(
            "Transaction",
            transaction["transaction_id"],
            transaction["status"],
            "confirm return",
            message=f"Transaction {transaction['transaction_id']} is a permanent transfer and cannot be returned",
        )
    validate_status(transaction, {TransactionStatus.APPROVED}, "confirm return")


def validate_returned_date(transaction: dict[str, Any], returned_date: datetime) -> None:
    """A rental cannot come back before it went out"""
    start = parse_timestamp(transaction["rental_details"]["start_date"])
    if start is not None and as_utc(returned_date) < start:
        raise ValidationError(
            "Returned date cannot be before the rental start date", field="returned_date"
        )


def validate_completable(transaction: dict[str, Any]) -> None:
    """Rentals close through a return, not a completion"""
    if transaction["transaction_type"] != TransactionType.PERMANENT.value:
        raise InvalidStateTransition(
            "Transaction",
            transaction["transaction_id"],
            transaction["status"],
            "complete",
            message=f"Rental {transaction['transaction_id']} closes by confirming its return",
        )
    validate_status(transaction, {TransactionStatus.APPROVED}, "complete")
