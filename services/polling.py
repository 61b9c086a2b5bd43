"""
Bounded polling for Printful asynchronous jobs.

Printful calculates draft-order costs and order estimates asynchronously.
CompletionPoller re-fetches a job until it reaches a terminal state, the
time budget runs out, or the caller cancels.

State machine:
    pending -> calculated | completed   (PollResult returned)
    pending -> failed                   (PollingFailedError, non-retryable)
    pending -> timeout                  (PollingTimeoutError, 504)
    pending -> cancelled                (PollingCancelledError)

Two instantiations:
    wait_for_order_costs()       - GET /v2/orders/{id}, 2s interval, 90s budget
    wait_for_order_estimation()  - GET /v2/order-estimation-tasks?id=, 1.5s, 45s

Cancellation:
    Pass a threading.Event as cancel_event. Sleeping between polls is an
    Event.wait(), so setting the event interrupts the wait immediately.

Usage:
    result = wait_for_order_costs(client, order_id, store_id=store)
    costs = result.costs
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from core.exceptions import (
    PollingCancelledError,
    PollingFailedError,
    PollingTimeoutError,
    PrintfulAPIError,
)
from core.printful_client import PrintfulClient, extract_data_block, extract_order_data
from models.job_result import JobStatus, PollResult
from logging_config import get_order_logger

ORDER_COSTS_INTERVAL_MS = 2000
ORDER_COSTS_TIMEOUT_MS = 90000
ESTIMATION_INTERVAL_MS = 1500
ESTIMATION_TIMEOUT_MS = 45000

# (status, unwrapped job data, partial flag)
Classification = Tuple[JobStatus, Dict[str, Any], bool]


class CompletionPoller:
    """
    Generic bounded polling loop.

    Each iteration fetches the job, classifies the response and either
    returns, raises, or sleeps for the interval. The loop runs while the
    elapsed time is below the budget, so the number of attempts is about
    timeout_ms / interval_ms.

    Attributes:
        operation: Human-readable job name used in errors and logs
    """

    def __init__(
        self,
        operation: str,
        fetch: Callable[[str], Any],
        classify: Callable[[Any], Classification],
        interval_ms: int,
        timeout_ms: int,
        tolerate_not_found: bool = False,
        cancel_event: Optional[threading.Event] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], bool]] = None
    ):
        """
        Initialize the poller.

        Args:
            operation: Name for logs/errors (e.g. "order costs")
            fetch: Returns the current upstream job body for a job id
            classify: Maps a body to (JobStatus, data, partial)
            interval_ms: Delay between attempts
            timeout_ms: Total polling budget
            tolerate_not_found: Retry instead of failing on HTTP 404
            cancel_event: Set to abort the wait
            clock: Monotonic seconds source (injectable for tests)
            sleep: Waits N seconds, returns True if cancelled
        """
        self.operation = operation
        self._fetch = fetch
        self._classify = classify
        self._interval_ms = interval_ms
        self._timeout_ms = timeout_ms
        self._tolerate_not_found = tolerate_not_found
        self._cancel_event = cancel_event or threading.Event()
        self._clock = clock or time.monotonic
        self._sleep = sleep or self._cancel_event.wait

    def wait(self, job_id: Any) -> PollResult:
        """
        Poll until the job reaches a terminal state.

        Raises:
            PollingFailedError: Upstream reported failure
            PollingTimeoutError: Budget exhausted
            PollingCancelledError: cancel_event was set
            PrintfulAPIError: Any non-tolerated upstream error
        """
        job_id = str(job_id)
        job_logger = get_order_logger(job_id)
        job_logger.info(
            f"Waiting for {self.operation} "
            f"(timeout={self._timeout_ms}ms, poll_interval={self._interval_ms}ms)"
        )

        started = self._clock()
        attempts = 0

        while (self._clock() - started) * 1000 < self._timeout_ms:
            if self._cancel_event.is_set():
                raise PollingCancelledError(self.operation, attempts, job_id)

            attempts += 1
            response = None

            try:
                response = self._fetch(job_id)
            except PrintfulAPIError as e:
                if not (self._tolerate_not_found and e.status == 404):
                    job_logger.error(f"{self.operation} poll failed on attempt {attempts}: {e}")
                    raise
                job_logger.debug(f"{self.operation}: job not visible yet (404), attempt {attempts}")

            if response is not None:
                status, data, partial = self._classify(response)

                if status is JobStatus.FAILED:
                    job_logger.error(f"Printful reported {self.operation} failed")
                    raise PollingFailedError(
                        f"Printful {self.operation} calculation failed",
                        job_id=job_id,
                        body=response
                    )

                if status.is_success:
                    elapsed = self._clock() - started
                    if partial:
                        job_logger.info(
                            f"{self.operation} accepted with partial result after "
                            f"{elapsed:.1f}s ({attempts} attempts)"
                        )
                    else:
                        job_logger.info(f"{self.operation} completed after {elapsed:.1f}s ({attempts} attempts)")
                    return PollResult(
                        job_id=job_id,
                        status=status,
                        data=data,
                        raw=response,
                        attempts=attempts,
                        partial=partial,
                    )

            if self._sleep(self._interval_ms / 1000.0):
                raise PollingCancelledError(self.operation, attempts, job_id)

        job_logger.error(f"{self.operation} timed out after {attempts} attempts")
        raise PollingTimeoutError(self.operation, self._timeout_ms, attempts, job_id)


# =============================================================================
# CLASSIFIERS
# =============================================================================

def calculation_status(cost_block: Any) -> Optional[str]:
    """Lower-cased `calculation_status` (or `status`) of a cost block."""
    if not isinstance(cost_block, dict):
        return None
    for key in ("calculation_status", "status"):
        value = cost_block.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return None


def classify_order_costs(response: Any) -> Classification:
    """
    Classify a GET /v2/orders/{id} body.

    Success needs both costs and retail_costs calculated; costs alone being
    calculated is accepted as a partial result because retail valuation
    routinely finishes a little later.
    """
    order = extract_order_data(response) or {}
    cost_status = calculation_status(order.get("costs")) or "unknown"
    retail_status = calculation_status(order.get("retail_costs")) or cost_status

    if cost_status == "failed" or retail_status == "failed":
        return JobStatus.FAILED, order, False

    if cost_status == "calculated" and retail_status == "calculated":
        return JobStatus.CALCULATED, order, False

    if cost_status == "calculated" and order.get("costs"):
        return JobStatus.CALCULATED, order, True

    return JobStatus.PENDING, order, False


def _estimation_task(response: Any) -> Dict[str, Any]:
    if isinstance(response, dict) and isinstance(response.get("data"), list):
        tasks = [task for task in response["data"] if isinstance(task, dict)]
        return tasks[0] if tasks else {}
    return extract_data_block(response) or {}


def classify_estimation(response: Any) -> Classification:
    """Classify a GET /v2/order-estimation-tasks?id= body by status/state."""
    task = _estimation_task(response)
    raw_status = task.get("status") or task.get("state") or ""
    status = raw_status.strip().lower() if isinstance(raw_status, str) else ""

    if status == "failed":
        return JobStatus.FAILED, task, False
    if status == "completed":
        return JobStatus.COMPLETED, task, False
    return JobStatus.PENDING, task, False


# =============================================================================
# ENTRY POINTS
# =============================================================================

def wait_for_order_costs(
    client: PrintfulClient,
    order_id: Any,
    store_id: Optional[str] = None,
    interval_ms: int = ORDER_COSTS_INTERVAL_MS,
    timeout_ms: int = ORDER_COSTS_TIMEOUT_MS,
    cancel_event: Optional[threading.Event] = None,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], bool]] = None
) -> PollResult:
    """
    Wait for a draft order's costs to be calculated.

    A 404 is retried: a freshly created order is not always readable yet.
    """
    if not order_id:
        raise ValueError("Order ID is required to poll Printful costs")

    poller = CompletionPoller(
        operation="order costs",
        fetch=lambda job_id: client.get_order(job_id, store_id=store_id),
        classify=classify_order_costs,
        interval_ms=interval_ms,
        timeout_ms=timeout_ms,
        tolerate_not_found=True,
        cancel_event=cancel_event,
        clock=clock,
        sleep=sleep,
    )
    return poller.wait(order_id)


def wait_for_order_estimation(
    client: PrintfulClient,
    task_id: Any,
    store_id: Optional[str] = None,
    interval_ms: int = ESTIMATION_INTERVAL_MS,
    timeout_ms: int = ESTIMATION_TIMEOUT_MS,
    cancel_event: Optional[threading.Event] = None,
    clock: Optional[Callable[[], float]] = None,
    sleep: Optional[Callable[[float], bool]] = None
) -> PollResult:
    """Wait for an order estimation task to complete."""
    if not task_id:
        raise ValueError("Task ID is required to poll Printful estimation")

    poller = CompletionPoller(
        operation="order estimation",
        fetch=lambda job_id: client.get_estimation_task(job_id, store_id=store_id),
        classify=classify_estimation,
        interval_ms=interval_ms,
        timeout_ms=timeout_ms,
        cancel_event=cancel_event,
        clock=clock,
        sleep=sleep,
    )
    return poller.wait(task_id)
