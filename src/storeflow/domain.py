"""storeflow domain — Inventory Ledger, Reservations and Order Fulfillment.

A single bounded context: stock quantities with an append-only audit ledger,
time-boxed stock reservations, the order lifecycle, refunds, and the
fulfillment saga that turns a shopping cart into an order. Every record is
scoped to a store (tenant) passed explicitly on each call.
"""

import structlog
from protean.domain import Domain

storeflow = Domain(name="storeflow")

logger = structlog.get_logger(__name__)
