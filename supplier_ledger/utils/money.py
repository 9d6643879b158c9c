"""Money helpers. All ledger amounts are integer cents."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """
    Convert user input to a 2-place Decimal.

    Floats go through str() so 0.1 stays 0.10. Booleans, NaN and
    infinities are rejected with ValueError.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        try:
            dec = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported amount type: {type(value).__name__}")

    if not dec.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    try:
        return dec.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value!r}") from exc


def to_cents(value: Any) -> int:
    return int(to_decimal(value) * 100)


def format_cents(cents: int) -> str:
    """2-place decimal string, e.g. 30000 -> "300.00"."""
    return str((Decimal(cents) / 100).quantize(CENT))
