"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for journal entry numbers and
    business document numbers (returns).  Uses a dedicated counter table
    with row-level locking (``SELECT ... FOR UPDATE``) to guarantee
    uniqueness under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalService (entry numbers) and module services.

Invariants enforced:
    - The locked counter row is the sole source of truth for the next
      value.  MAX(x)+1 over the target table is never used.
    - Allocation is transactional: a rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-increasing
        integer value.  The increment is only committed when the caller's
        transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    JOURNAL_ENTRY = "journal_entry"
    SALES_RETURN = "sales_return"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it,
        and returns the new value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # Savepoint so a lost creation race does not roll back caller work
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_number(self, sequence_name: str, prefix: str, width: int = 6) -> str:
        """Formatted document number, e.g. ``JE-000042``."""
        return f"{prefix}-{self.next_value(sequence_name):0{width}d}"

