"""
Gear Share - Event-sourced sports equipment exchange

Schools ask for equipment, nearby schools and sports governing bodies lend
or give it, and every reservation, transaction and return is recorded as an
auditable event.
"""

from gear_share.exchange import GearShare

__version__ = "0.1.0"
__all__ = ["GearShare", "__version__"]
