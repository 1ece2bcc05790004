"""Order placement — command and handler.

The header, its line items and both address snapshots are written in one
unit of work, so an order either exists completely or not at all.
"""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from storeflow.domain import storeflow
from storeflow.ordering.order import Order


@storeflow.command(part_of="Order")
class PlaceOrder:
    store_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(max_length=50)
    items = Text(required=True)  # JSON: list of item dicts
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict
    subtotal = Float(required=True)
    tax_amount = Float(default=0.0)
    shipping_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_amount = Float(required=True)
    currency = String(max_length=3, default="USD")
    notes = Text()


def _loads(value):
    return json.loads(value) if isinstance(value, str) else value


@storeflow.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        pricing = {
            "subtotal": command.subtotal,
            "tax_amount": command.tax_amount or 0.0,
            "shipping_amount": command.shipping_amount or 0.0,
            "discount_amount": command.discount_amount or 0.0,
            "total_amount": command.total_amount,
            "currency": command.currency or "USD",
        }

        order = Order.place(
            store_id=command.store_id,
            customer_id=command.customer_id,
            items_data=_loads(command.items),
            shipping_address=_loads(command.shipping_address),
            billing_address=_loads(command.billing_address) if command.billing_address else None,
            pricing=pricing,
            notes=command.notes,
            order_number=command.order_number,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
