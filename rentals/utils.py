from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

ZERO = Decimal("0")
CENT = Decimal("0.01")


def as_decimal(x: Any, default: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    """Decimal from str/int/float/Decimal; ``default`` for None, "", junk or non-finite."""
    if x is None or x == "":
        return default
    try:
        result = x if isinstance(x, Decimal) else Decimal(str(x))
    except (InvalidOperation, ValueError):
        return default
    # NaN and Infinity are junk too
    return result if result.is_finite() else default


def money(x: Any) -> Decimal:
    return as_decimal(x).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_zero(x: Decimal) -> Decimal:
    return x if x > ZERO else ZERO


def jsonable(details: dict) -> dict:
    # JSONField cannot store Decimal/datetime
    out = {}
    for k, v in details.items():
        if isinstance(v, Decimal):
            out[k] = str(v)
        elif hasattr(v, "isoformat"):
            out[k] = v.isoformat()
        else:
            out[k] = v
    return out
