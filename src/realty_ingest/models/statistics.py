"""
Run statistics for a single pipeline invocation.
"""
from dataclasses import dataclass, asdict
from typing import Dict


@dataclass
class RunStatistics:
    """Outcome counters for one batch: insert / update / skip / error."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.skipped + self.errors

    def merge(self, other: "RunStatistics") -> "RunStatistics":
        """Return a new RunStatistics summing both sets of counters."""
        return RunStatistics(
            inserted=self.inserted + other.inserted,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)

    def __str__(self) -> str:
        return (
            f"inserted: {self.inserted}, updated: {self.updated}, "
            f"skipped: {self.skipped}, errors: {self.errors}"
        )
