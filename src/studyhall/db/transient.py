"""Translate infrastructure failures from SQLAlchemy into TransientStoreError."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError

from studyhall.errors import TransientStoreError


@contextmanager
def transient_store_errors(operation: str) -> Iterator[None]:
    """Re-raise connection/operational failures inside the block as TransientStoreError."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        raise TransientStoreError(f"{operation} failed: {exc.orig or exc}") from exc
