"""Bookkeeping shared by the scheduled batch jobs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class JobResult:
    """Outcome of one batch run. Failed items are logged, never raised."""

    processed: int = 0
    failed: int = 0

    def merge(self, other: JobResult) -> None:
        self.processed += other.processed
        self.failed += other.failed
