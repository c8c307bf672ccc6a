"""
SequenceService -- gap-free counters for the audit log.

Each named sequence is one SequenceCounter row, read with
``SELECT ... FOR UPDATE`` and incremented in the caller's transaction, so
two writers can never draw the same audit seq.  A rolled-back transaction
gives its number back.  Nothing here commits.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chama_kernel.logging_config import get_logger
from chama_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    AUDIT_EVENT = "audit_event"

    def __init__(self, session: Session):
        self._session = session

    def _counter_for_update(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create_counter(self, sequence_name: str) -> SequenceCounter | None:
        """
        Insert the counter at 0 inside a savepoint.

        Returns None when a concurrent writer inserted it first.
        """
        try:
            with self._session.begin_nested():
                counter = SequenceCounter(name=sequence_name, current_value=0)
                self._session.add(counter)
                self._session.flush()
        except IntegrityError:
            logger.debug("sequence_counter_exists", extra={"sequence_name": sequence_name})
            return None
        return counter

    def next_value(self, sequence_name: str) -> int:
        """Increment ``sequence_name`` and return the new value, starting at 1."""
        counter = self._counter_for_update(sequence_name)
        if counter is None:
            counter = self._create_counter(sequence_name) or self._counter_for_update(sequence_name)
            if counter is None:
                raise RuntimeError(f"Sequence counter {sequence_name!r} could not be created")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value
