"""
Money helpers for Printful cost blocks.

Printful returns amounts as strings ("12.50"), numbers, or null depending
on the endpoint and how far the calculation has progressed.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Optional


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a Printful amount into a float.

    Args:
        value: "12.50", 12.5, "$12.50", None, ...

    Returns:
        Finite float, or None if the value is not a usable amount
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip().replace("$", "").replace(",", "")
        if not value:
            return None

    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        return None

    return amount if math.isfinite(amount) else None


def has_totals(cost_block: Any) -> bool:
    """True when a costs/retail_costs block carries a total or subtotal."""
    if not isinstance(cost_block, dict):
        return False
    return cost_block.get("total") is not None or cost_block.get("subtotal") is not None


def block_currency(*blocks: Optional[Dict[str, Any]]) -> Optional[str]:
    """First non-empty `currency` among the given blocks."""
    for block in blocks:
        if isinstance(block, dict):
            currency = block.get("currency")
            if isinstance(currency, str) and currency.strip():
                return currency.strip()
    return None
