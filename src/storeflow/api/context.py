"""Per-request log context.

Binds a request id, the method, the path and, for store-scoped routes, the
store id into structlog's context variables so every log line written while
handling the request carries them.
"""

from uuid import uuid4

from fastapi import Request

from storeflow.utils.logging import add_context, clear_context


def store_from_path(path: str) -> str | None:
    """Return the tenant segment of ``/stores/{store_id}/...`` paths."""
    parts = path.strip("/").split("/")
    if len(parts) >= 2 and parts[0] == "stores" and parts[1]:
        return parts[1]
    return None


async def request_log_context(request: Request, call_next):
    clear_context()
    add_context(request_id=uuid4().hex, method=request.method, path=request.url.path)
    store_id = store_from_path(request.url.path)
    if store_id:
        add_context(store_id=store_id)
    try:
        return await call_next(request)
    finally:
        clear_context()
