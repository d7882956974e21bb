from dataclasses import dataclass
from typing import List

from deskwise.domain.scheduling.timestamps import format_timestamp


@dataclass
class DomainError(Exception):
    detail: str
    title: str = "Domain Error"
    type: str = "https://example.com/problems/domain-error"
    errors: List[dict] | None = None


class ScheduleConflictError(DomainError):
    def __init__(self, conflicts: list) -> None:
        self.conflicts = list(conflicts)
        super().__init__(
            detail=f"Technician is already booked for {len(self.conflicts)} overlapping item(s)",
            title="Schedule Conflict",
            type="https://example.com/problems/schedule-conflict",
            errors=[_conflict_entry(item) for item in self.conflicts],
        )


def _conflict_entry(item) -> dict:  # noqa: ANN001
    return {
        "id": item.id,
        "title": item.title,
        "start": format_timestamp(item.starts_at),
        "end": format_timestamp(item.ends_at),
    }
