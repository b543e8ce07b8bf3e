from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

UNKNOWN_APP_NAME = "Unknown App"


@dataclass(frozen=True)
class AvailabilityResult:
    is_available: bool
    app_name: str
    message: str


@dataclass
class TargetState:
    """Mutable per-URL record. Only checks of its own URL touch it."""

    url: str
    consecutive_errors: int = 0
    last_error: str | None = None
    last_result: AvailabilityResult | None = None
    in_flight: int = 0

    def record_success(self, result: AvailabilityResult) -> None:
        self.consecutive_errors = 0
        self.last_error = None
        self.last_result = result

    def record_failure(self, error: str) -> int:
        self.consecutive_errors += 1
        self.last_error = error
        return self.consecutive_errors


class CheckOutcome(str, Enum):
    AVAILABLE = "available"
    FULL = "full"
    RETRY_SCHEDULED = "retry_scheduled"
    ESCALATED = "escalated"
    FAILED = "failed"
    SKIPPED = "skipped"


def build_states(urls: tuple[str, ...] | list[str]) -> dict[str, TargetState]:
    return {url: TargetState(url=url) for url in urls}
