"""Subtotal and total rules for purchase lines.

Both the purchase recorder and the ledger reconciler go through these
functions, so a purchase total is always derived from its stored lines.
Lines with a price of zero still carry a subtotal (0) but never count toward
``total_paid``; a purchase where no line is priced has ``total_paid = None``.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Tuple


class PricedLine(Protocol):
    price: float
    subtotal: float


def line_subtotal(purchased_quantity: float, price: float) -> float:
    return float(purchased_quantity) * float(price)


def snapshot_line(
    quantity: float,
    purchased_quantity: Optional[float],
    price: Optional[float],
) -> Tuple[float, float, float]:
    """Return ``(purchased_quantity, price, subtotal)`` for a checked list item.

    Missing purchased quantities fall back to the requested quantity and
    missing prices to 0.
    """

    final_quantity = float(purchased_quantity if purchased_quantity is not None else quantity)
    final_price = float(price if price is not None else 0.0)
    return final_quantity, final_price, line_subtotal(final_quantity, final_price)


def total_paid(lines: Iterable[PricedLine]) -> Optional[float]:
    """Sum subtotals of priced lines; ``None`` when nothing is priced."""

    total = sum(line.subtotal for line in lines if line.price > 0)
    return total if total > 0 else None


__all__ = ["PricedLine", "line_subtotal", "snapshot_line", "total_paid"]
