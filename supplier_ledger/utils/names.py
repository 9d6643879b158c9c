from typing import Any


def _recase(value: str) -> str:
    return value[0].upper() + value[1:].lower()


def normalize_party(name: Any) -> str:
    """
    Canonical ledger key for an external party.

    "  PATEL " -> "Patel". Blank or missing input gives "" which means
    "no party". Idempotent.
    """
    if not isinstance(name, str):
        return ""
    current = name.strip()
    if not current:
        return ""
    # Upper-casing can expand the first character ("ß" -> "SS"); recase
    # until stable so normalizing twice is a no-op.
    for _ in range(4):
        recased = _recase(current)
        if recased == current:
            break
        current = recased
    return current
