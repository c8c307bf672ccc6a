"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service.  Services use ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services.  Every service in ``chama_kernel/services/`` that
    performs write operations extends this class.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback the outer transaction.  Record operations
    that must be all-or-nothing open a SAVEPOINT with ``session.begin_nested()``
    and release or roll back only that SAVEPOINT.
"""

from abc import ABC

from sqlalchemy.orm import Session

from chama_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods; those belong
          in ``chama_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source.  Defaults to the system clock.
        """
        self.session = session
        self.clock = clock or SystemClock()
