"""Request-scoped logging for the booking engine.

Every service operation runs inside ``request_scope()``. The scope installs a
request id and restores the previous one on exit: sequential operations get
distinct ids, while an operation nested in another (a reschedule reading the
booking first, or a transport that opened its own scope) shares the outer id.

Usage:
    from booking_engine.logging_context import request_scope

    with request_scope("REQ-abc123"):
        await service.create_booking(...)  # → ... [REQ-abc123] Booking BK-... created
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, TextIO

NO_REQUEST = "-"
HANDLER_NAME = "booking_engine"

LOG_FORMAT = "%(asctime)s %(service)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST)


def current_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Run the enclosed block under a request id.

    Without an explicit id the enclosing scope's id is reused, or a fresh
    ``REQ-`` id is minted when there is none.
    """
    if request_id is None:
        outer = _request_id.get()
        request_id = outer if outer != NO_REQUEST else f"REQ-{uuid.uuid4().hex[:10]}"
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


class RequestContextFilter(logging.Filter):
    """Stamps ``request_id`` and ``service`` onto each record passing the handler."""

    def __init__(self, service: str = "booking-engine") -> None:
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        if not hasattr(record, "service"):
            record.service = self.service  # type: ignore[attr-defined]
        return True


def configure_logging(
    level: str, service: str = "booking-engine", stream: Optional[TextIO] = None
) -> logging.Handler:
    """Install (or replace) the engine's root handler and set the root level.

    Calling it again swaps the previous engine handler instead of stacking a
    second one, so reloading settings never duplicates log lines.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.addFilter(RequestContextFilter(service))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
