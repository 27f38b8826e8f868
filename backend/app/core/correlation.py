"""
Correlation id propagation across a chat turn and its nested tool calls
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

CORRELATION_ID_CV: ContextVar[Optional[str]] = ContextVar("CORRELATION_ID_CV", default=None)


def new_correlation_id() -> str:
    """Create a fresh correlation id"""
    return f"corr_{uuid.uuid4().hex[:16]}"


def get_correlation_id() -> Optional[str]:
    """Return the correlation id bound to the current context, if any"""
    return CORRELATION_ID_CV.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation id for the duration of the block

    Nested scopes without an explicit id reuse the enclosing one, so tool calls
    made during a turn share the turn's id.
    """
    cid = correlation_id or get_correlation_id() or new_correlation_id()
    token = CORRELATION_ID_CV.set(cid)
    try:
        yield cid
    finally:
        CORRELATION_ID_CV.reset(token)
