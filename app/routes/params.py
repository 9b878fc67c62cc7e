"""Lenient pagination parameters shared by the list endpoints.

Values are parsed the way the web client has always sent them: missing,
non-numeric or zero ``limit`` means the default page size, large values are
capped, and a bad ``offset`` means the first page. Listing never answers 422.
"""

from app.services.result_store import DEFAULT_LIST_LIMIT

MAX_LIST_LIMIT = 100


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def parse_limit(raw: str | None) -> int:
    value = _parse_int(raw)
    if not value or value < 0:
        return DEFAULT_LIST_LIMIT
    return min(value, MAX_LIST_LIMIT)


def parse_offset(raw: str | None) -> int:
    value = _parse_int(raw)
    if value is None or value < 0:
        return 0
    return value
