"""
Buffer-day reconciliation.

Upstream ledgers date a transaction by a timestamp that can drift across a
day boundary (timezone and settlement lag). Pipelines therefore fetch one
extra day on each side of the requested window and reassign boundary records
by document number:

- a main-window record whose document also appears on the day after the
  window belongs to the next period and is dropped
- a record from the day before the window is added when its document appears
  inside the window and at least twice on that previous day

The rule is asymmetric on purpose and is kept exactly as observed.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Generic, List, Tuple, TypeVar

from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class BufferPartition(Generic[T]):
    """Records of an extended window split by position relative to the request."""

    main: List[T] = field(default_factory=list)
    prev: List[T] = field(default_factory=list)
    next: List[T] = field(default_factory=list)
    outside: int = 0


class BufferDayReconciler(Generic[T]):
    """
    Reconcile records fetched over a window extended by one day per side.

    Args:
        date_of: Returns a record's ISO day (YYYY-MM-DD)
        document_of: Returns a record's document number
    """

    def __init__(self, date_of: Callable[[T], str], document_of: Callable[[T], str]):
        self.date_of = date_of
        self.document_of = document_of

    @staticmethod
    def extend_window(start: date, end: date) -> Tuple[date, date]:
        """Window to fetch: one buffer day before start and one after end."""
        return start - timedelta(days=1), end + timedelta(days=1)

    def partition(self, records: List[T], start: date, end: date) -> BufferPartition[T]:
        start_str, end_str = start.isoformat(), end.isoformat()
        prev_str = (start - timedelta(days=1)).isoformat()
        next_str = (end + timedelta(days=1)).isoformat()

        parts: BufferPartition[T] = BufferPartition()
        for record in records:
            day = self.date_of(record)
            if start_str <= day <= end_str:
                parts.main.append(record)
            elif day == prev_str:
                parts.prev.append(record)
            elif day == next_str:
                parts.next.append(record)
            else:
                parts.outside += 1
        return parts

    def reconcile(self, records: List[T], start: date, end: date) -> List[T]:
        """
        Reassign boundary-day records to the requested window.

        Args:
            records: Records covering the extended window
            start: First requested day
            end: Last requested day

        Returns:
            Kept main-window records in original order, followed by the
            previous-day records added to the window, in original order
        """
        parts = self.partition(records, start, end)

        main_docs = {self.document_of(r) for r in parts.main}
        next_docs = {self.document_of(r) for r in parts.next}
        prev_counts = Counter(self.document_of(r) for r in parts.prev)

        kept = [r for r in parts.main if self.document_of(r) not in next_docs]
        added = [
            r for r in parts.prev
            if self.document_of(r) in main_docs and prev_counts[self.document_of(r)] >= 2
        ]

        logger.info(
            f"Buffer days {start}..{end}: main={len(parts.main)} prev={len(parts.prev)} "
            f"next={len(parts.next)} -> excluded {len(parts.main) - len(kept)}, added {len(added)}"
        )
        if parts.outside:
            logger.debug(f"Discarded {parts.outside} records outside the extended window")

        return kept + added
