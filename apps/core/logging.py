"""
Correlation ids for log records.

HTTP requests bind one per request (``CorrelationIdMiddleware``); socket
frames bind one per received frame so a client event and the broadcasts it
causes share an id.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

_correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None):
    """Bind an id (generated when not given) for the duration of the block."""
    token = _correlation_id_var.set(correlation_id or uuid.uuid4().hex)
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)


class CorrelationIdFilter:
    def filter(self, record):
        record.correlation_id = get_correlation_id() or 'unknown'
        return True
