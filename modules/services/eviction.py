"""Oldest-first eviction for the scan record collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from modules.services.records import RecordFile, ScanRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EvictionPlan:
    """Outcome of selecting records to drop."""

    survivors: List[ScanRecord] = field(default_factory=list)
    evicted: List[ScanRecord] = field(default_factory=list)
    freed: int = 0


class EvictionPolicy:
    """Drop the oldest records until a requested number of bytes is freed."""

    def __init__(self, record_file: RecordFile) -> None:
        self.record_file = record_file

    @staticmethod
    def plan(records: Sequence[ScanRecord], required_space: int) -> EvictionPlan:
        """Select victims oldest-first, stopping once ``required_space`` is covered.

        Ties on timestamp fall back to storage order (``sorted`` is stable).
        Survivors keep their persisted order.
        """
        ordered = sorted(enumerate(records), key=lambda item: item[1].sort_key())

        victims: set[int] = set()
        freed = 0
        for index, record in ordered:
            if freed >= required_space:
                break
            freed += record.serialized_size()
            victims.add(index)

        return EvictionPlan(
            survivors=[record for index, record in enumerate(records) if index not in victims],
            evicted=[record for index, record in ordered if index in victims],
            freed=freed,
        )

    def reclaim(self, required_space: int) -> int:
        """Evict and persist; return the estimated number of bytes freed.

        The caller must hold the owning store's lock.
        """
        records = self.record_file.load_or_empty()
        plan = self.plan(records, required_space)

        for record in plan.evicted:
            logger.info("Deleted oldest scan to free space: %s", record.id)

        if plan.survivors:
            if plan.evicted:
                self.record_file.write(plan.survivors)
        else:
            self.record_file.remove()

        logger.info("Freed %d bytes of space", plan.freed)
        return plan.freed
