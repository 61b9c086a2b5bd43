"""
Tests for bounded polling of Printful async jobs.

All tests use a fake clock whose time only advances when the poller
sleeps, so timing assertions are exact.
"""

import threading
from unittest.mock import MagicMock

import pytest

from core.exceptions import (
    PollingCancelledError,
    PollingFailedError,
    PollingTimeoutError,
    PrintfulAPIError,
)
from models.job_result import JobStatus
from services.polling import (
    CompletionPoller,
    calculation_status,
    classify_estimation,
    classify_order_costs,
    wait_for_order_costs,
    wait_for_order_estimation,
)


def order_body(cost_status, retail_status=None, **extra):
    order = {"id": 10472, "costs": {"calculation_status": cost_status, "total": "21.50"}}
    if retail_status is not None:
        order["retail_costs"] = {"calculation_status": retail_status, "total": "39.00"}
    order.update(extra)
    return {"data": order}


@pytest.fixture
def printful():
    return MagicMock()


class TestClassifyOrderCosts:
    """Test mapping order bodies to job status."""

    def test_both_calculated(self):
        status, data, partial = classify_order_costs(order_body("calculated", "calculated"))
        assert status is JobStatus.CALCULATED
        assert partial is False
        assert data["id"] == 10472

    def test_costs_calculated_retail_processing_is_partial(self):
        status, _, partial = classify_order_costs(order_body("calculated", "processing"))
        assert status is JobStatus.CALCULATED
        assert partial is True

    def test_missing_retail_status_follows_costs(self):
        status, _, partial = classify_order_costs(order_body("calculated"))
        assert status is JobStatus.CALCULATED
        assert partial is False

    @pytest.mark.parametrize("costs,retail", [("failed", "calculated"), ("calculated", "failed")])
    def test_failed(self, costs, retail):
        status, _, _ = classify_order_costs(order_body(costs, retail))
        assert status is JobStatus.FAILED

    def test_pending(self):
        status, _, _ = classify_order_costs(order_body("pending", "pending"))
        assert status is JobStatus.PENDING

    def test_v1_result_envelope(self):
        body = {"result": {"order": {"costs": {"status": "Calculated"}}}}
        status, _, _ = classify_order_costs(body)
        assert status is JobStatus.CALCULATED

    def test_calculation_status_reads_status_field(self):
        assert calculation_status({"status": " Done "}) == "done"
        assert calculation_status({}) is None
        assert calculation_status(None) is None


class TestClassifyEstimation:

    def test_completed(self):
        status, task, _ = classify_estimation({"data": {"id": "t1", "status": "completed", "costs": {}}})
        assert status is JobStatus.COMPLETED
        assert task["id"] == "t1"

    def test_list_envelope_and_state_field(self):
        status, task, _ = classify_estimation({"data": [{"id": "t1", "state": "FAILED"}]})
        assert status is JobStatus.FAILED
        assert task["id"] == "t1"

    def test_pending(self):
        status, _, _ = classify_estimation({"data": {"status": "processing"}})
        assert status is JobStatus.PENDING


class TestWaitForOrderCosts:
    """Test the order-costs polling loop."""

    def test_immediate_success(self, printful, fake_clock):
        printful.get_order.return_value = order_body("calculated", "calculated")

        result = wait_for_order_costs(printful, 10472, store_id="s", clock=fake_clock, sleep=fake_clock.sleep)

        assert result.status is JobStatus.CALCULATED
        assert result.attempts == 1
        assert result.costs["total"] == "21.50"
        assert fake_clock.sleeps == []
        printful.get_order.assert_called_once_with("10472", store_id="s")

    def test_partial_acceptance_stops_waiting(self, printful, fake_clock):
        printful.get_order.side_effect = [
            order_body("pending", "pending"),
            order_body("calculated", "processing"),
        ]

        result = wait_for_order_costs(printful, 10472, clock=fake_clock, sleep=fake_clock.sleep)

        assert result.partial is True
        assert result.attempts == 2
        assert printful.get_order.call_count == 2

    def test_not_found_is_retried(self, printful, fake_clock):
        not_found = PrintfulAPIError(status=404)
        printful.get_order.side_effect = [
            not_found, not_found, not_found,
            order_body("calculated", "calculated"),
        ]

        result = wait_for_order_costs(printful, 10472, clock=fake_clock, sleep=fake_clock.sleep)

        assert result.attempts == 4
        assert fake_clock.sleeps == [2.0, 2.0, 2.0]

    def test_other_upstream_errors_propagate(self, printful, fake_clock):
        printful.get_order.side_effect = PrintfulAPIError(status=401, body={"error": "unauthorized"})

        with pytest.raises(PrintfulAPIError) as exc_info:
            wait_for_order_costs(printful, 10472, clock=fake_clock, sleep=fake_clock.sleep)

        assert exc_info.value.status == 401
        assert printful.get_order.call_count == 1

    def test_failed_is_terminal(self, printful, fake_clock):
        body = order_body("failed", "failed")
        printful.get_order.return_value = body

        with pytest.raises(PollingFailedError) as exc_info:
            wait_for_order_costs(printful, 10472, clock=fake_clock, sleep=fake_clock.sleep)

        assert exc_info.value.body == body
        assert exc_info.value.http_status == 502
        assert printful.get_order.call_count == 1

    @pytest.mark.parametrize("timeout_ms,interval_ms", [(10000, 2000), (90000, 2000), (45000, 1500), (5000, 3000)])
    def test_timeout_attempt_count(self, printful, fake_clock, timeout_ms, interval_ms):
        printful.get_order.return_value = order_body("pending", "pending")

        with pytest.raises(PollingTimeoutError) as exc_info:
            wait_for_order_costs(
                printful, 10472,
                interval_ms=interval_ms, timeout_ms=timeout_ms,
                clock=fake_clock, sleep=fake_clock.sleep,
            )

        expected = timeout_ms // interval_ms
        assert abs(exc_info.value.attempts - expected) <= 1
        assert exc_info.value.http_status == 504
        assert exc_info.value.timeout_ms == timeout_ms
        assert fake_clock.now * 1000 >= timeout_ms

    def test_timeout_of_404s(self, printful, fake_clock):
        printful.get_order.side_effect = PrintfulAPIError(status=404)

        with pytest.raises(PollingTimeoutError) as exc_info:
            wait_for_order_costs(
                printful, 10472, interval_ms=2000, timeout_ms=10000,
                clock=fake_clock, sleep=fake_clock.sleep,
            )

        assert exc_info.value.attempts == 5

    def test_missing_order_id(self, printful):
        with pytest.raises(ValueError):
            wait_for_order_costs(printful, None)


class TestCancellation:
    """Test cancelling a wait through a threading.Event."""

    def test_cancelled_before_first_attempt(self, printful):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(PollingCancelledError) as exc_info:
            wait_for_order_costs(printful, 10472, cancel_event=cancel)

        assert exc_info.value.attempts == 0
        printful.get_order.assert_not_called()

    def test_cancelled_during_sleep(self, printful, fake_clock):
        printful.get_order.return_value = order_body("pending", "pending")

        def sleep(seconds):
            fake_clock.now += seconds
            return printful.get_order.call_count >= 2

        with pytest.raises(PollingCancelledError) as exc_info:
            wait_for_order_costs(printful, 10472, clock=fake_clock, sleep=sleep)

        assert exc_info.value.attempts == 2

    def test_event_interrupts_default_sleep(self, printful):
        cancel = threading.Event()

        def fetch(order_id, store_id=None):
            cancel.set()
            return order_body("pending", "pending")

        printful.get_order.side_effect = fetch

        # Interval is long; the set event must end the wait immediately
        with pytest.raises(PollingCancelledError):
            wait_for_order_costs(printful, 10472, interval_ms=60000, timeout_ms=600000, cancel_event=cancel)


class TestWaitForOrderEstimation:
    """Test the estimation-task polling loop."""

    def test_completes(self, printful, fake_clock):
        printful.get_estimation_task.side_effect = [
            {"data": {"id": "t1", "status": "pending"}},
            {"data": {"id": "t1", "status": "completed", "costs": {"total": "10.00"}}},
        ]

        result = wait_for_order_estimation(printful, "t1", clock=fake_clock, sleep=fake_clock.sleep)

        assert result.status is JobStatus.COMPLETED
        assert result.costs == {"total": "10.00"}
        assert fake_clock.sleeps == [1.5]

    def test_not_found_is_not_tolerated(self, printful, fake_clock):
        printful.get_estimation_task.side_effect = PrintfulAPIError(status=404)

        with pytest.raises(PrintfulAPIError):
            wait_for_order_estimation(printful, "t1", clock=fake_clock, sleep=fake_clock.sleep)

    def test_failed(self, printful, fake_clock):
        printful.get_estimation_task.return_value = {"data": {"id": "t1", "status": "failed"}}

        with pytest.raises(PollingFailedError):
            wait_for_order_estimation(printful, "t1", clock=fake_clock, sleep=fake_clock.sleep)


class TestCompletionPoller:

    def test_generic_poller(self, fake_clock):
        responses = iter(["a", "b", "done"])

        def classify(body):
            status = JobStatus.COMPLETED if body == "done" else JobStatus.PENDING
            return status, {"body": body}, False

        poller = CompletionPoller(
            "test job", lambda job_id: next(responses), classify,
            interval_ms=100, timeout_ms=1000, clock=fake_clock, sleep=fake_clock.sleep,
        )
        result = poller.wait("job-1")

        assert result.job_id == "job-1"
        assert result.attempts == 3
        assert result.data == {"body": "done"}
        assert result.to_dict()["status"] == "completed"
