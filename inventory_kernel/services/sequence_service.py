"""
SequenceService -- gap-tolerant counters behind movement ``seq`` and order numbers.

Named counters live in ``sequence_counters``:

* ``inventory_movement``         -- global movement ordering
* ``restock_order:<store_id>``   -- per-store PO numbering

The counter row is locked for the rest of the caller's transaction, so two
writers allocating from the same counter serialize, and the value only
becomes visible when the caller commits.  A rolled-back transaction gives
its value back.  ``MAX(seq) + 1`` is never used.

The service flushes; it never commits.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:

    INVENTORY_MOVEMENT = "inventory_movement"

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def restock_order_sequence(store_id) -> str:
        return f"restock_order:{store_id}"

    def _locked(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _create_counter(self, name: str) -> SequenceCounter | None:
        """
        Insert a counter at 0 inside a savepoint.

        Returns None when another transaction created it first; the caller
        then locks the winner's row.
        """
        savepoint = self._session.begin_nested()
        counter = SequenceCounter(name=name, current_value=0)
        self._session.add(counter)
        try:
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_created_concurrently", extra={"sequence_name": name})
            return None
        savepoint.commit()
        return counter

    def next_value(self, sequence_name: str) -> int:
        """Increment and return the counter (first value is 1)."""
        counter = self._locked(sequence_name) or self._create_counter(sequence_name)
        if counter is None:
            counter = self._locked(sequence_name)
        if counter is None:
            raise RuntimeError(f"Sequence counter {sequence_name!r} could not be created")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last allocated value, or None if the counter was never used."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
