"""Request correlation ids for scheduling logs.

Each book, reschedule or cancel call runs under one id, so its policy
checks, commit and calendar/notification side effects can be grepped
together. The orchestrator assigns ``REQ-xxxxxxxx`` unless the caller's
request handler already set one.

    set_request_id("REQ-7f3a19c2")
    logger = get_request_logger(__name__)
    logger.info("Session booked")  # record.request_id == "REQ-7f3a19c2"
"""

import logging
from contextvars import ContextVar

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Stamps the active request id on each record as ``request_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Module logger carrying a single ``RequestIdFilter``.

    Formatters may then use ``%(request_id)s``.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
