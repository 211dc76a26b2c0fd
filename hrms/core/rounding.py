from decimal import ROUND_HALF_UP, Decimal
from typing import Any

_CENT = Decimal("0.01")


def round2(value: Any) -> float:
    """Round a monetary or day-count value to 2 decimals, half-cent ties away from zero."""
    return float(Decimal(repr(float(value or 0.0))).quantize(_CENT, rounding=ROUND_HALF_UP))
