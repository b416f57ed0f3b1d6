"""
Transactions Module

Binding records of equipment moving between providers and schools, with
the rental return sub-lifecycle and read-time overdue detection.
"""

from gear_share.transactions.commands import (
    CancelTransaction,
    CompleteTransaction,
    ConfirmReturn,
    CreateTransaction,
)
from gear_share.transactions.engine import TransactionReconciliationEngine
from gear_share.transactions.handlers import TransactionCommandHandlers
from gear_share.transactions.models import (
    TRANSACTION_PREFIXES,
    ItemCondition,
    RentalDetails,
    TransactionItem,
    TransactionStatus,
    TransactionTerms,
    TransactionType,
    is_overdue,
)
from gear_share.transactions.projections import TransactionRegistry

__all__ = [
    "CreateTransaction",
    "ConfirmReturn",
    "CancelTransaction",
    "CompleteTransaction",
    "TransactionReconciliationEngine",
    "TransactionCommandHandlers",
    "TRANSACTION_PREFIXES",
    "ItemCondition",
    "RentalDetails",
    "TransactionItem",
    "TransactionStatus",
    "TransactionTerms",
    "TransactionType",
    "is_overdue",
    "TransactionRegistry",
]
