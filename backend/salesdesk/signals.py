# Overview: Post-commit notifications for cache invalidation in collaborating views.

"""
Signals are sent ONLY after the transaction that caused them has committed.
A rolled-back operation sends nothing.

    stock_changed      sender=stock_code, quantity_on_hand=<int>
    views_invalidated  sender=<app name>, paths=[<route path>, ...]

Receivers are fire-and-forget: a failing receiver is logged and never
undoes the committed mutation.
"""

from __future__ import annotations

from typing import Iterable

from blinker import Namespace
from flask import current_app

_signals = Namespace()

stock_changed = _signals.signal("stock-changed")
views_invalidated = _signals.signal("views-invalidated")

SALES_PATH = "/sales"
INVENTORY_PATH = "/inventory"
FINANCIALS_PATH = "/financials"
LOW_STOCK_ALERTS_PATH = "/inventory/alerts"


def sale_path(sale_id: int) -> str:
    return f"{SALES_PATH}/{sale_id}"


def product_path(stock_code: str) -> str:
    return f"/products/{stock_code}"


def _send(signal, sender, **kwargs) -> None:
    try:
        signal.send(sender, **kwargs)
    except Exception:
        current_app.logger.exception("Receiver failed for signal %s", signal.name)


def notify_stock_changed(changes: dict[str, int]) -> None:
    """changes maps stock_code -> quantity_on_hand after commit."""
    for stock_code, quantity in changes.items():
        _send(stock_changed, stock_code, quantity_on_hand=quantity)


def invalidate_views(paths: Iterable[str]) -> None:
    unique = list(dict.fromkeys(paths))
    if not unique:
        return
    current_app.logger.debug("Invalidating views: %s", ", ".join(unique))
    _send(views_invalidated, current_app.name, paths=unique)
