"""
Donations Module

Requests fulfilled by a gift of money or equipment rather than a loan.
"""

from gear_share.donations.bridge import DonationBridge
from gear_share.donations.commands import CancelDonation, CreateDonation
from gear_share.donations.gateway import DonationGateway, DonationLedger
from gear_share.donations.models import (
    DonatedItem,
    DonationStatus,
    DonationType,
    DonorRef,
    DonorType,
    MonetaryDetails,
    PaymentMethod,
)
from gear_share.donations.projections import DonationRegistry

__all__ = [
    "DonationBridge",
    "CreateDonation",
    "CancelDonation",
    "DonationGateway",
    "DonationLedger",
    "DonatedItem",
    "DonationStatus",
    "DonationType",
    "DonorRef",
    "DonorType",
    "MonetaryDetails",
    "PaymentMethod",
    "DonationRegistry",
]
