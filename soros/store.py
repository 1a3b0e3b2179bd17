"""
store.py - In-Memory Outcome Store

Reference implementation of the OutcomeStore protocol: an append-only,
lineage-keyed log with a logical clock. Production deployments plug in a
document-store backed collaborator with the same two methods; this one backs
tests, simulations and offline sessions.

Key properties:
    - Append-only: records are never mutated or deleted (clear() is test-only)
    - Logical time: created_at comes from current_time, which only moves forward
    - Total order: a monotonic sequence number breaks ties between equal times
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from .core import (
    OutcomeRecord, PendingOutcome,
    PersistenceFailure,
)


class InMemoryOutcomeStore:
    """
    Append-only outcome log keyed by lineage.

    Thread Safety:
        Not thread-safe. Share one store between engines of the same thread,
        or give each thread its own.

    Example:
        store = InMemoryOutcomeStore("session", datetime(2025, 1, 1), verbose=False)
        engine = ProgressionEngine(Configuration(), store, owner_id="alice")
        engine.record_outcome(Outcome.WIN)
        store.list_ordered(engine.lineage_id)
    """

    def __init__(
        self,
        name: str = "memory",
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a store.

        Args:
            name: Store identifier (appears in record ids)
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print a line for every appended record (default: True)
            test_mode: Enable clear() (default: False)
        """
        self.name = name
        self.verbose = verbose
        self._test_mode = test_mode
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._next_sequence: int = 0
        self._records: Dict[str, List[OutcomeRecord]] = defaultdict(list)
        self._by_id: Dict[str, OutcomeRecord] = {}

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the store."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the store's logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # OutcomeStore PROTOCOL
    # ========================================================================

    def _generate_record_id(self, lineage_id: str, sequence: int) -> str:
        """
        Generate a unique record ID.

        Format: out:{store_name}:{lineage_id}:{sequence:012d}
        """
        return f"out:{self.name}:{lineage_id}:{sequence:012d}"

    def append(self, pending: PendingOutcome) -> OutcomeRecord:
        """
        Persist a pending outcome.

        Args:
            pending: Outcome produced by ProgressionEngine.record_outcome

        Returns:
            The stored OutcomeRecord with id, created_at and sequence

        Raises:
            PersistenceFailure: If given anything other than a PendingOutcome
        """
        if not isinstance(pending, PendingOutcome):
            raise PersistenceFailure(
                f"Expected PendingOutcome, got {type(pending).__name__}"
            )
        sequence = self._next_sequence
        self._next_sequence += 1
        record = OutcomeRecord.from_pending(
            pending,
            id=self._generate_record_id(pending.lineage_id, sequence),
            created_at=self._current_time,
            sequence=sequence,
        )
        self._records[pending.lineage_id].append(record)
        self._by_id[record.id] = record
        if self.verbose:
            print(f"[{self.name}] appended {record!r}")
        return record

    def list_ordered(self, lineage_id: str) -> List[OutcomeRecord]:
        """Records of a lineage sorted by created_at (sequence breaks ties)."""
        return sorted(
            self._records.get(lineage_id, []),
            key=lambda r: (r.created_at, r.sequence),
        )

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get(self, record_id: str) -> OutcomeRecord:
        """
        Look up a record by id.

        Raises:
            PersistenceFailure: If no record has this id
        """
        try:
            return self._by_id[record_id]
        except KeyError:
            raise PersistenceFailure(f"Record {record_id} not found") from None

    def list_lineages(self) -> List[str]:
        """Lineages with at least one record, sorted."""
        return sorted(k for k, v in self._records.items() if v)

    def __len__(self) -> int:
        return len(self._by_id)

    def clear(self, lineage_id: Optional[str] = None) -> None:
        """
        Drop records (all, or one lineage's).

        Only available in test mode; the log is append-only otherwise.

        Raises:
            PersistenceFailure: If called when test_mode is False
        """
        if not self._test_mode:
            raise PersistenceFailure(
                "clear() is disabled outside test mode. "
                "Set test_mode=True when creating the store for testing."
            )
        lineages = [lineage_id] if lineage_id is not None else list(self._records)
        for lineage in lineages:
            for record in self._records.pop(lineage, []):
                del self._by_id[record.id]
