"""
Exchange Policy - tunable parameters of the equipment exchange

Proximity fallbacks, the earth radius used for great-circle distances,
default item condition and whether donations draw from tracked inventory.

Fun fact: The mean radius of the Earth (6371 km) is itself a compromise -
the planet is about 21 km fatter at the equator than pole to pole!
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ExchangePolicy(BaseModel):
    """
    Exchange configuration

    Defaults reproduce the behaviour schools already rely on: same-district
    requests first, then same-province, then everyone else.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    # Proximity ranking
    same_district_distance: float = Field(
        default=1.0,
        ge=0.0,
        description="Proxy distance (km-equivalent) when only districts match",
    )

    same_province_distance: float = Field(
        default=50.0,
        ge=0.0,
        description="Proxy distance when provinces match but districts differ",
    )

    default_distance: float = Field(
        default=1000.0,
        ge=0.0,
        description="Proxy distance when neither district nor province match",
    )

    earth_radius_km: float = Field(
        default=6371.0,
        gt=0.0,
        description="Earth radius used by the Haversine formula",
    )

    # Transactions
    default_item_condition: Literal["new", "excellent", "good", "fair", "poor"] = Field(
        default="good",
        description="Condition recorded for transaction items when the provider gives none",
    )

    # Donations
    donation_reserves_inventory: bool = Field(
        default=True,
        description=(
            "Reserve donated equipment through the inventory registry when the donor "
            "is a provider with tracked stock"
        ),
    )

    # Listings
    default_listing_statuses: list[str] = Field(
        default_factory=lambda: ["pending"],
        description="Request statuses shown to providers when no filter is given",
    )

    @model_validator(mode="after")
    def validate_distance_order(self) -> "ExchangePolicy":
        """Proxy distances must keep their relative order"""
        if not (
            self.same_district_distance
            <= self.same_province_distance
            <= self.default_distance
        ):
            raise ValueError(
                "Proxy distances must satisfy district <= province <= default"
            )
        return self


def build_default_policy() -> ExchangePolicy:
    """Build the default exchange policy"""
    return ExchangePolicy()
