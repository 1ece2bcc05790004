"""Low-stock alerts and the inventory summary report."""

from dataclasses import dataclass
from enum import Enum

from protean.utils.globals import current_domain

from storeflow.inventory.stock import ProductStock


class AlertUrgency(Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


_URGENCY_RANK = {
    AlertUrgency.CRITICAL: 0,
    AlertUrgency.HIGH: 1,
    AlertUrgency.MEDIUM: 2,
    AlertUrgency.LOW: 3,
}


@dataclass(frozen=True)
class LowStockAlert:
    product_id: str
    current_stock: int
    low_stock_threshold: int
    stock_percentage: float
    urgency: AlertUrgency


@dataclass(frozen=True)
class InventorySummary:
    tracked_products: int
    untracked_products: int
    low_stock_products: int
    out_of_stock_products: int
    total_units: int


def stock_percentage(quantity, threshold) -> float:
    if not threshold:
        return 0.0 if quantity <= 0 else 100.0
    return round(min(100.0, max(0.0, quantity * 100.0 / threshold)), 2)


def urgency_for(quantity, threshold) -> AlertUrgency:
    if quantity <= 0:
        return AlertUrgency.CRITICAL
    if quantity < threshold * 0.25:
        return AlertUrgency.HIGH
    if quantity < threshold * 0.5:
        return AlertUrgency.MEDIUM
    return AlertUrgency.LOW


def low_stock_alerts(store_id, limit=50, urgency=None) -> list[LowStockAlert]:
    """Tracked products at or below their threshold, most urgent first."""
    if urgency is not None:
        urgency = AlertUrgency(urgency)

    alerts = []
    for stock in current_domain.repository_for(ProductStock).for_store(store_id):
        if not stock.is_low_stock():
            continue
        alert = LowStockAlert(
            product_id=str(stock.product_id),
            current_stock=stock.quantity,
            low_stock_threshold=stock.low_stock_threshold,
            stock_percentage=stock_percentage(stock.quantity, stock.low_stock_threshold),
            urgency=urgency_for(stock.quantity, stock.low_stock_threshold),
        )
        if urgency is None or alert.urgency == urgency:
            alerts.append(alert)

    alerts.sort(key=lambda alert: (_URGENCY_RANK[alert.urgency], alert.stock_percentage))
    return alerts[:limit] if limit else alerts


def inventory_summary(store_id) -> InventorySummary:
    stocks = current_domain.repository_for(ProductStock).for_store(store_id)
    tracked = [stock for stock in stocks if stock.track_inventory]
    return InventorySummary(
        tracked_products=len(tracked),
        untracked_products=len(stocks) - len(tracked),
        low_stock_products=sum(1 for stock in tracked if stock.is_low_stock()),
        out_of_stock_products=sum(1 for stock in tracked if stock.quantity <= 0),
        total_units=sum(stock.quantity for stock in tracked),
    )
