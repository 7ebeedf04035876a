"""Infrastructure-level exceptions shared by every module."""

from __future__ import annotations


class StorageFailure(Exception):
    """The transaction machinery itself failed (open, commit or nesting).

    Never raised for business-rule violations: errors raised by a unit of
    work are propagated unchanged so callers can match them.
    """
