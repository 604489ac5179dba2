"""Results writing entities."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AttemptSummary:
    """Counts of leaf units (attempts, or branches that never ran a case)."""

    passed: int
    failed: int
    skipped: int

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped
