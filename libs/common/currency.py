"""Currency helpers.

Amounts are stored in minor units (pesewas for GHS, kobo for NGN), which is
also what Paystack sends and expects. 100 minor units = 1 major unit.
"""

from __future__ import annotations

MINOR_UNITS_PER_MAJOR: int = 100


def to_major_units(amount: int) -> float:
    """Convert minor units to a major-unit amount."""
    return amount / MINOR_UNITS_PER_MAJOR


def format_amount(amount: int, currency: str) -> str:
    """Render minor units for humans, e.g. ``12050, "GHS"`` -> ``"120.50 GHS"``."""
    return f"{to_major_units(amount):.2f} {currency}"
