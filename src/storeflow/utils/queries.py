"""Query helpers shared by the custom repositories."""

from datetime import UTC

PAGE_SIZE = 100


def fetch_all(query, page_size=PAGE_SIZE) -> list:
    """Return every record matched by a DAO ``query``.

    Protean querysets are limited to one page by default; this walks the
    pages until a short one comes back.
    """
    records = []
    offset = 0
    while True:
        page = query.offset(offset).limit(page_size).all().items
        records.extend(page)
        if len(page) < page_size:
            return records
        offset += page_size


def as_utc(value):
    """Attach UTC to naive datetimes so stored and fresh values compare."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
