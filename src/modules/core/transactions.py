"""Transaction Coordinator.

A single commit/rollback code path reused by composition: services hand
a *unit of work* to ``TransactionCoordinator.run`` and every write the unit
of work performs through the ``TransactionScope`` it receives commits or
rolls back together.

Contract:
- Errors raised by the unit of work roll the transaction back and are
  re-raised unchanged (same object), so callers can match domain errors.
- Any other fault inside the unit of work (including ``BaseException``)
  also rolls back before it propagates.
- A failure to open or commit the transaction surfaces as
  ``StorageFailure`` chained to the database error.
- Coordinated transactions do not nest: calling ``run`` from inside a unit
  of work bound to the same database alias raises ``StorageFailure``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Set, TypeVar

import structlog
from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction

from modules.core.exceptions import StorageFailure

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_local = threading.local()


def _active_aliases() -> Set[str]:
    aliases = getattr(_local, "aliases", None)
    if aliases is None:
        aliases = _local.aliases = set()
    return aliases


@dataclass(frozen=True)
class TransactionScope:
    """Handle given to a unit of work for the lifetime of one transaction.

    Repositories route their queries through ``using`` so that every write
    lands on the connection that owns the open transaction.
    """

    using: str = DEFAULT_DB_ALIAS

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run *callback* only if (and after) the transaction commits."""
        transaction.on_commit(callback, using=self.using)


class TransactionCoordinator:
    """Run units of work atomically against one database alias."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS) -> None:
        self.using = using

    def run(self, unit_of_work: Callable[[TransactionScope], T]) -> T:
        active = _active_aliases()
        if self.using in active:
            logger.error("transaction.nested_rejected", using=self.using)
            raise StorageFailure(
                f"A coordinated transaction is already open on '{self.using}'."
            )

        active.add(self.using)
        try:
            return self._execute(unit_of_work, TransactionScope(using=self.using))
        finally:
            active.discard(self.using)

    def _execute(
        self, unit_of_work: Callable[[TransactionScope], T], scope: TransactionScope
    ) -> T:
        log = logger.bind(using=self.using)
        opened = False
        work_failed = False

        try:
            with transaction.atomic(using=self.using):
                opened = True
                try:
                    result = unit_of_work(scope)
                except BaseException:
                    work_failed = True
                    raise
        except DatabaseError as exc:
            if work_failed:
                log.warning("transaction.rolled_back", error=type(exc).__name__)
                raise
            if not opened:
                log.error("transaction.open_failed", error=str(exc))
                raise StorageFailure("Could not open transaction.") from exc
            log.error("transaction.commit_failed", error=str(exc))
            raise StorageFailure("Failed to commit transaction.") from exc
        except BaseException as exc:
            log.info("transaction.rolled_back", error=type(exc).__name__)
            raise

        log.debug("transaction.committed")
        return result
