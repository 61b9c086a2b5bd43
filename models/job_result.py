"""
Async job result data models.

These models represent the outcome of waiting on a Printful asynchronous
job: a draft order's cost calculation, or an order estimation task.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional


class JobStatus(Enum):
    """
    Status of an upstream asynchronous job.

    Lifecycle:
        Order costs:     PENDING -> (CALCULATED | FAILED)
        Estimation task: PENDING -> (COMPLETED | FAILED)

    Timeouts and cancellation are raised as PollingError subclasses, they
    are never a status.
    """

    PENDING = "pending"
    """Upstream is still working."""

    CALCULATED = "calculated"
    """Order costs are available."""

    COMPLETED = "completed"
    """Estimation task finished."""

    FAILED = "failed"
    """Upstream rejected the calculation (terminal, not retryable)."""

    @property
    def is_success(self) -> bool:
        return self in (JobStatus.CALCULATED, JobStatus.COMPLETED)


@dataclass
class PollResult:
    """
    Successful result of a polling loop.

    Failures are raised as PollingError subclasses rather than returned,
    so a PollResult always carries a success status.
    """

    job_id: str
    """Printful order id or estimation task id."""

    status: JobStatus
    """CALCULATED or COMPLETED."""

    data: Dict[str, Any] = field(default_factory=dict)
    """Unwrapped order / task object."""

    raw: Any = None
    """Full response body of the final poll."""

    attempts: int = 0
    """Number of status fetches made."""

    partial: bool = False
    """True when costs were accepted before retail_costs finished."""

    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "attempts": self.attempts,
            "partial": self.partial,
            "finished_at": self.finished_at.isoformat(),
        }

    @property
    def costs(self) -> Optional[Dict[str, Any]]:
        return self.data.get("costs")

    @property
    def retail_costs(self) -> Optional[Dict[str, Any]]:
        return self.data.get("retail_costs")
