"""Tests for the import job status poller."""

import asyncio
import logging

import pytest

from ledgerimport.errors import ApiError, InvalidJobId, PollerError
from ledgerimport.models import ImportJob, ImportRowError
from ledgerimport.services.notifications import NotificationKind
from ledgerimport.services.poller import JobStatusPoller, PollerState, validate_job_id
from tests.conftest import job_payload


def make_job(status: str = "Processing", job_id: int = 42, **overrides) -> ImportJob:
    return ImportJob.model_validate(job_payload(job_id, status, **overrides))


class StubClient:
    """Client double returning scripted status responses.

    When ``gate`` is set, status requests block until it is released so tests
    can make responses overlap.
    """

    def __init__(self, statuses, errors=None):
        self.statuses = list(statuses)
        self.errors = errors or []
        self.status_calls = 0
        self.error_calls = 0
        self.gate: asyncio.Event | None = None

    async def get_job_status(self, job_id: int) -> ImportJob:
        self.status_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_job_errors(self, job_id: int) -> list[ImportRowError]:
        self.error_calls += 1
        return self.errors


class RefreshCounter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def make_poller(client, notifier, **kwargs) -> JobStatusPoller:
    kwargs.setdefault("interval", 0.001)
    kwargs.setdefault("max_duration", None)
    kwargs.setdefault("backoff_factor", 1.0)
    kwargs.setdefault("max_interval", 1.0)
    return JobStatusPoller(client, notifier, **kwargs)


# =============================================================================
# Job id validation
# =============================================================================


class TestJobIdValidation:
    """Tests for job id validation on start."""

    @pytest.mark.parametrize("job_id", [0, -1, "42", None, 4.2, True])
    def test_invalid_job_ids_rejected(self, job_id):
        """Test that non-positive or non-integer ids are rejected."""
        with pytest.raises(InvalidJobId):
            validate_job_id(job_id)

    def test_invalid_job_id_is_value_error(self):
        """Test InvalidJobId can be caught as ValueError."""
        with pytest.raises(ValueError):
            validate_job_id(0)

    async def test_start_with_invalid_id_leaves_poller_idle(self, notifier):
        """Test a rejected start does not begin polling."""
        client = StubClient([make_job()])
        poller = make_poller(client, notifier)

        with pytest.raises(InvalidJobId):
            poller.start(-5)

        assert poller.state is PollerState.IDLE
        assert client.status_calls == 0


# =============================================================================
# Terminal outcomes
# =============================================================================


class TestOutcomes:
    """Tests for the refresh/notify policy on terminal statuses."""

    async def test_clean_success(self, notifier):
        """Processing twice then Completed with no failures."""
        client = StubClient(
            [
                make_job("Processing", percentageComplete=10),
                make_job("Processing", percentageComplete=60),
                make_job("Completed", successfulRecords=100, processedRecords=100, percentageComplete=100),
            ]
        )
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        job = await poller.wait()

        assert job.status.value == "Completed"
        assert poller.state is PollerState.COMPLETED
        assert client.status_calls == 3
        assert refresh.calls == 1
        assert notifier.kinds == [NotificationKind.SUCCESS]
        assert "100 records imported" in notifier.notifications[0].message
        assert client.error_calls == 0

    async def test_partial_success(self, notifier):
        """Completed with failed rows fetches errors once and warns with both counts."""
        errors = [
            ImportRowError(row_number=3, column_name="Amount", error_message="Not a number"),
        ]
        client = StubClient(
            [make_job("Completed", successfulRecords=80, failedRecords=20, percentageComplete=100)],
            errors=errors,
        )
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert client.error_calls == 1
        assert poller.errors == errors
        assert refresh.calls == 1
        assert notifier.kinds == [NotificationKind.WARNING]
        message = notifier.notifications[0].message
        assert "80 successful" in message
        assert "20 failed" in message

    async def test_all_rows_failed_does_not_refresh(self, notifier):
        """Completed with zero successes has nothing to reload."""
        client = StubClient([make_job("Completed", successfulRecords=0, failedRecords=5)])
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert refresh.calls == 0
        assert notifier.kinds == [NotificationKind.WARNING]

    async def test_nothing_imported(self, notifier):
        """Completed 0/0 gives an info notification and no refresh."""
        client = StubClient([make_job("Completed")])
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert refresh.calls == 0
        assert notifier.kinds == [NotificationKind.INFO]

    @pytest.mark.parametrize("status", ["Failed", "Error"])
    async def test_job_failure(self, notifier, status):
        """Failed/Error produce a danger notification with the server message."""
        client = StubClient([make_job(status, errorMessage="Invalid header")])
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert refresh.calls == 0
        assert notifier.kinds == [NotificationKind.DANGER]
        assert "Invalid header" in notifier.notifications[0].message
        assert poller.state.value == status.lower()
        assert client.error_calls == 1

    async def test_failure_without_message(self, notifier):
        """Test a failure with no server message still notifies."""
        client = StubClient([make_job("Failed")])
        poller = make_poller(client, notifier)

        poller.start(42)
        await poller.wait()

        assert "no error message" in notifier.notifications[0].message

    async def test_async_refresh_callback(self, notifier):
        """Test a coroutine refresh callback is awaited."""
        refreshed = []

        async def refresh():
            refreshed.append(True)

        client = StubClient([make_job("Completed", successfulRecords=1)])
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert refreshed == [True]

    async def test_refresh_failure_still_notifies(self, notifier, caplog):
        """Test an exception from the refresh callback is logged, not raised."""
        caplog.set_level(logging.ERROR)

        def refresh():
            raise RuntimeError("table gone")

        client = StubClient([make_job("Completed", successfulRecords=1)])
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert poller.has_refreshed is True
        assert notifier.kinds == [NotificationKind.SUCCESS]
        assert "Refresh after import job 42 failed" in caplog.text


# =============================================================================
# Polling behaviour
# =============================================================================


class TestPollingLoop:
    """Tests for loop behaviour between start and terminal status."""

    async def test_transient_errors_are_logged_and_polling_continues(self, notifier, caplog):
        """Test a failed status fetch does not stop the loop."""
        caplog.set_level(logging.WARNING)
        client = StubClient(
            [
                ApiError("Service unavailable", status_code=503),
                make_job("Processing"),
                make_job("Completed", successfulRecords=5),
            ]
        )
        poller = make_poller(client, notifier)

        poller.start(42)
        await poller.wait()

        assert client.status_calls == 3
        assert notifier.kinds == [NotificationKind.SUCCESS]
        assert "Service unavailable" in caplog.text

    async def test_network_error_mid_job_applies_outcome_once(self, notifier):
        """Fetch 3 of 5 raises; fetch 5 is terminal; side effects happen once."""
        client = StubClient(
            [
                make_job("Processing", percentageComplete=10),
                make_job("Processing", percentageComplete=30),
                ConnectionError("connection reset"),
                make_job("Processing", percentageComplete=70),
                make_job("Completed", successfulRecords=100, percentageComplete=100),
            ]
        )
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()

        assert client.status_calls == 5
        assert refresh.calls == 1
        assert notifier.kinds == [NotificationKind.SUCCESS]
        assert not poller._task.cancelled()
        assert poller._task.exception() is None

    async def test_non_monotonic_progress_is_accepted(self, notifier):
        """Test progress going backwards is displayed as reported."""
        seen = []
        client = StubClient(
            [
                make_job("Processing", percentageComplete=50),
                make_job("Processing", percentageComplete=30),
                make_job("Completed", successfulRecords=2, percentageComplete=100),
            ]
        )
        poller = make_poller(client, notifier, on_update=lambda job: seen.append(job.percentage_complete))

        poller.start(42)
        await poller.wait()

        assert seen == [50, 30, 100]
        assert notifier.kinds == [NotificationKind.SUCCESS]

    async def test_failing_progress_callback_does_not_stop_polling(self, notifier, caplog):
        """Test an exception from on_update is logged and the outcome still applies."""

        def broken_display(job):
            raise RuntimeError("display broke")

        client = StubClient([make_job("Completed", successfulRecords=3)])
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh, on_update=broken_display)

        poller.start(42)
        await poller.wait()

        assert poller.state is PollerState.COMPLETED
        assert refresh.calls == 1
        assert notifier.kinds == [NotificationKind.SUCCESS]
        assert poller._task.exception() is None
        assert "Progress callback for import job 42 failed" in caplog.text

    async def test_cancelled_status_keeps_polling(self, notifier):
        """Test Cancelled is not treated as terminal."""
        client = StubClient(
            [make_job("Cancelled"), make_job("Completed", successfulRecords=1)]
        )
        poller = make_poller(client, notifier)

        poller.start(42)
        await poller.wait()

        assert client.status_calls == 2
        assert poller.state is PollerState.COMPLETED

    async def test_start_while_polling_raises(self, notifier):
        """Test a second start on an active poller is refused."""
        client = StubClient([make_job("Processing")])
        client.gate = asyncio.Event()
        poller = make_poller(client, notifier)

        poller.start(42)
        with pytest.raises(PollerError):
            poller.start(43)

        poller.stop()
        await poller.wait()

    async def test_timeout_gives_up_with_warning(self, notifier):
        """Test polling stops after max_duration with a warning."""
        client = StubClient([make_job("Processing")])
        poller = make_poller(client, notifier, max_duration=0.02)

        poller.start(42)
        await asyncio.wait_for(poller.wait(), timeout=5)

        assert poller.timed_out is True
        assert poller.state is PollerState.IDLE
        assert notifier.kinds == [NotificationKind.WARNING]
        assert notifier.notifications[0].title == "Still Processing"

    async def test_backoff_is_capped(self, notifier, monkeypatch):
        """Test the interval grows by the backoff factor up to max_interval."""
        delays = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay):
            delays.append(delay)
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)

        client = StubClient(
            [make_job("Processing")] * 4 + [make_job("Completed", successfulRecords=1)]
        )
        poller = make_poller(client, notifier, interval=1.0, backoff_factor=2.0, max_interval=5.0)

        poller.start(42)
        await poller.wait()

        assert delays == [1.0, 2.0, 4.0, 5.0]

    async def test_defaults_come_from_settings(self, notifier, test_settings):
        """Test timing defaults are read from settings."""
        poller = JobStatusPoller(StubClient([make_job()]), notifier, settings=test_settings)

        assert poller.interval == test_settings.poll_interval
        assert poller.max_duration is None
        assert poller.backoff_factor == 1.0


# =============================================================================
# At-most-once side effects
# =============================================================================


class TestSideEffectsAtMostOnce:
    """Tests for overlapping responses and stop."""

    async def test_overlapping_terminal_responses(self, notifier):
        """Several in-flight fetches all answering Completed act only once."""
        client = StubClient(
            [make_job("Completed", successfulRecords=90, failedRecords=10)],
            errors=[ImportRowError(row_number=1, error_message="bad")],
        )
        client.gate = asyncio.Event()
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        extra = asyncio.gather(poller.poll(), poller.poll(), poller.poll())
        await asyncio.sleep(0)
        client.gate.set()
        await extra
        await poller.wait()

        assert client.status_calls >= 4
        assert client.error_calls == 1
        assert refresh.calls == 1
        assert len(notifier.notifications) == 1
        assert notifier.kinds == [NotificationKind.WARNING]

    async def test_stop_is_idempotent(self, notifier):
        """Test stop twice, and stop after terminal, are harmless."""
        client = StubClient([make_job("Processing")])
        client.gate = asyncio.Event()
        poller = make_poller(client, notifier)

        poller.start(42)
        await asyncio.sleep(0)
        poller.stop()
        poller.stop()
        await poller.wait()

        assert poller.state is PollerState.IDLE
        assert notifier.notifications == []

    async def test_stop_after_completion_keeps_terminal_state(self, notifier):
        """Test stop on a finished poller is a no-op."""
        client = StubClient([make_job("Completed", successfulRecords=1)])
        poller = make_poller(client, notifier)

        poller.start(42)
        await poller.wait()
        poller.stop()

        assert poller.state is PollerState.COMPLETED

    async def test_results_after_stop_are_discarded(self, notifier):
        """A response arriving after stop() has no effect."""
        client = StubClient([make_job("Completed", successfulRecords=5)])
        client.gate = asyncio.Event()
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        in_flight = asyncio.create_task(poller.poll())
        await asyncio.sleep(0)
        poller.stop()
        client.gate.set()
        result = await in_flight
        await poller.wait()

        assert result is None
        assert poller.job is None
        assert refresh.calls == 0
        assert notifier.notifications == []

    async def test_restart_resets_flags(self, notifier):
        """Test a finished poller can follow a new job."""
        client = StubClient([make_job("Completed", successfulRecords=1)])
        refresh = RefreshCounter()
        poller = make_poller(client, notifier, on_refresh=refresh)

        poller.start(42)
        await poller.wait()
        poller.start(43)
        await poller.wait()

        assert refresh.calls == 2
        assert len(notifier.notifications) == 2
