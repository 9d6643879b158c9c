"""
Obligation factory - derives supplier obligations from a repair transaction.

Each externally purchased part in the transaction's line items becomes one
Obligation owed to the store it was bought from. Bad line-item data never
raises: the transaction has already been saved and must not be affected.
"""

import json
import logging
from typing import Any, Dict, List

from supplier_ledger.models.obligation import Obligation, PARTS_CATEGORY, PENDING_METHOD
from supplier_ledger.models.transaction import Transaction
from supplier_ledger.utils.money import to_cents
from supplier_ledger.utils.names import normalize_party

logger = logging.getLogger(__name__)

DEFAULT_ITEM = "Parts"


def parse_line_items(raw: Any) -> List[Dict[str, Any]]:
    """
    Decode the serialized line-item field.

    Returns [] for missing data, unparseable JSON and any JSON that is not
    a list (internal repairs store an object here). Non-dict entries are
    dropped.
    """
    if raw is None or raw == "":
        return []

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Unparseable line items, no obligations derived: %s", exc)
            return []

    if not isinstance(raw, list):
        logger.debug("Line items are not a list (%s), nothing to derive", type(raw).__name__)
        return []

    lines = []
    for index, entry in enumerate(raw):
        if isinstance(entry, dict):
            lines.append(entry)
        else:
            logger.warning("Skipping malformed line item #%d: %r", index, entry)
    return lines


def line_party(line: Dict[str, Any]) -> str:
    """customStore wins over store when it is non-blank."""
    return normalize_party(line.get("customStore")) or normalize_party(line.get("store"))


def derive_obligations(transaction: Transaction) -> List[Obligation]:
    """
    Build (unsaved) obligations for the transaction's external parts.

    Lines without a party, or with a missing/non-numeric/non-positive cost,
    are skipped.
    """
    if not transaction.requires_inventory:
        return []

    obligations: List[Obligation] = []
    for line in parse_line_items(transaction.parts_cost):
        party = line_party(line)
        if not party:
            logger.debug("Skipping line item without a supplier: %r", line)
            continue

        try:
            cost_cents = to_cents(line.get("cost"))
        except (TypeError, ValueError):
            logger.warning("Skipping line item with invalid cost for %s: %r", party, line.get("cost"))
            continue
        if cost_cents <= 0:
            continue

        item = str(line.get("item") or "").strip() or DEFAULT_ITEM
        obligations.append(
            Obligation(
                party=party,
                description=f"Parts for {transaction.customer_name} - {transaction.device_model} ({item})",
                category=PARTS_CATEGORY,
                items=item,
                payment_method=PENDING_METHOD,
                transaction_id=transaction.id,
                amount_cents=cost_cents,
                paid_cents=0,
                remaining_cents=cost_cents,
            )
        )

    return obligations
