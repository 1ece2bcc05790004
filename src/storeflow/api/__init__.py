from storeflow.api.context import request_log_context
from storeflow.api.errors import register_error_handlers
from storeflow.api.routes import inventory_router, maintenance_router, order_router, reservation_router

__all__ = [
    "order_router",
    "inventory_router",
    "reservation_router",
    "maintenance_router",
    "register_error_handlers",
    "request_log_context",
]
