"""Import job status polling.

A ``JobStatusPoller`` follows one server-side import job until it reaches a
terminal status, then fetches the per-row errors and applies the
refresh/notify outcome exactly once.

Status fetch failures are logged and the loop carries on; the poller never
raises to its caller once started. Overlapping fetches (``poll()`` is safe to
call concurrently with the loop) are reconciled by one-shot flags that are set
before any await, so a late terminal response cannot repeat a side effect.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING

from ledgerimport.errors import InvalidJobId, PollerError
from ledgerimport.models import ImportJob, ImportRowError, ImportStatus
from ledgerimport.services.notifications import Notification, NotificationKind, Notifier

if TYPE_CHECKING:
    from ledgerimport.client import AccountingClient
    from ledgerimport.config import Settings

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[None] | None]
UpdateCallback = Callable[[ImportJob], None]


class PollerState(str, Enum):
    """Lifecycle of a poller for a single job."""

    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PollerState.COMPLETED, PollerState.FAILED, PollerState.ERROR)


TERMINAL_STATES = {
    ImportStatus.COMPLETED: PollerState.COMPLETED,
    ImportStatus.FAILED: PollerState.FAILED,
    ImportStatus.ERROR: PollerState.ERROR,
}


def validate_job_id(job_id: object) -> int:
    """Return ``job_id`` if it is a positive integer, else raise InvalidJobId."""
    if isinstance(job_id, bool) or not isinstance(job_id, int) or job_id <= 0:
        raise InvalidJobId(job_id)
    return job_id


class JobStatusPoller:
    """Observe a single import job to completion without duplicate side effects.

    Args:
        client: Accounting API client used for status and error fetches.
        notifier: Receives the single outcome notification.
        on_refresh: Called at most once when imported rows should be reloaded.
            May be a plain function or a coroutine function.
        on_update: Called with every accepted status snapshot (progress display).
        interval: Seconds between fetches.
        max_duration: Stop watching after this many seconds; None polls until
            the job terminates.
        backoff_factor: Multiplier applied to the interval after each fetch.
        max_interval: Upper bound for the backed-off interval.
        settings: Source of defaults for any timing argument left as None.
    """

    def __init__(
        self,
        client: "AccountingClient",
        notifier: Notifier,
        on_refresh: RefreshCallback | None = None,
        on_update: UpdateCallback | None = None,
        interval: float | None = None,
        max_duration: float | None = None,
        backoff_factor: float | None = None,
        max_interval: float | None = None,
        settings: "Settings | None" = None,
    ) -> None:
        if interval is None or backoff_factor is None or max_interval is None:
            if settings is None:
                from ledgerimport.config import get_settings

                settings = get_settings()
            if interval is None:
                interval = settings.poll_interval
            if max_duration is None:
                max_duration = settings.poll_max_duration
            if backoff_factor is None:
                backoff_factor = settings.poll_backoff_factor
            if max_interval is None:
                max_interval = settings.poll_max_interval

        self.client = client
        self.notifier = notifier
        self.on_refresh = on_refresh
        self.on_update = on_update
        self.interval = interval
        self.max_duration = max_duration or None
        self.backoff_factor = max(backoff_factor, 1.0)
        self.max_interval = max(max_interval, interval)

        self.state = PollerState.IDLE
        self.job_id: int | None = None
        self.job: ImportJob | None = None
        self.errors: list[ImportRowError] = []
        self.has_refreshed = False
        self.has_notified = False
        self.has_fetched_errors = False
        self.timed_out = False
        self._terminal = False
        self._stopped = False
        self._task: asyncio.Task | None = None

    @property
    def is_active(self) -> bool:
        return self.state is PollerState.POLLING

    def start(self, job_id: int) -> asyncio.Task:
        """Begin polling ``job_id`` on the running event loop.

        The first status fetch happens immediately, then once per interval.

        Raises:
            InvalidJobId: If ``job_id`` is not a positive integer.
            PollerError: If this poller is already polling.
        """
        job_id = validate_job_id(job_id)
        if self.state is PollerState.POLLING:
            raise PollerError(f"Already polling import job {self.job_id}")

        self.job_id = job_id
        self.job = None
        self.errors = []
        self.has_refreshed = False
        self.has_notified = False
        self.has_fetched_errors = False
        self.timed_out = False
        self._terminal = False
        self._stopped = False
        self.state = PollerState.POLLING

        logger.info("Polling import job %d every %.1fs", job_id, self.interval)
        self._task = asyncio.get_running_loop().create_task(
            self._run(job_id), name=f"import-job-{job_id}"
        )
        return self._task

    def stop(self) -> None:
        """Stop polling. Idempotent; a no-op once the job has terminated."""
        if self.state is not PollerState.POLLING:
            return

        self._stopped = True
        self.state = PollerState.IDLE
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info("Stopped polling import job %s", self.job_id)

    async def wait(self) -> ImportJob | None:
        """Wait for the polling loop to end and return the last job snapshot."""
        if self._task is not None:
            await asyncio.wait([self._task])
        return self.job

    async def _run(self, job_id: int) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        delay = self.interval

        while not self._stopped:
            await self.poll()
            if self._stopped or self._terminal:
                break

            if self.max_duration is not None and loop.time() - started >= self.max_duration:
                self._time_out(job_id)
                break

            await asyncio.sleep(delay)
            delay = min(delay * self.backoff_factor, self.max_interval)

    def _time_out(self, job_id: int) -> None:
        self._stopped = True
        self.timed_out = True
        self.state = PollerState.IDLE
        logger.warning(
            "Import job %d still not finished after %.0fs, giving up polling",
            job_id,
            self.max_duration,
        )
        self.notifier.warning(
            f"Import job {job_id} is still running on the server. "
            "Check its status again later.",
            title="Still Processing",
        )

    async def poll(self) -> ImportJob | None:
        """Fetch the job status once and act on it.

        Returns the accepted snapshot, or None when the fetch failed or the
        result was discarded because polling had stopped.
        """
        job_id = self.job_id
        if job_id is None or self._stopped:
            return None

        try:
            job = await self.client.get_job_status(job_id)
        except Exception as e:
            logger.warning("Error polling status of import job %d: %s", job_id, e)
            return None

        if self._stopped or job_id != self.job_id:
            logger.debug("Discarding status of import job %d received after stop", job_id)
            return None
        if self._terminal:
            # A slower request answered after the terminal one was handled
            return self.job

        self.job = job
        logger.info(
            "Import job %d: %s %.0f%% (%d/%d processed)",
            job_id,
            job.status.value,
            job.percentage_complete,
            job.processed_records,
            job.total_records,
        )
        if self.on_update is not None:
            try:
                self.on_update(job)
            except Exception:
                logger.exception("Progress callback for import job %d failed", job_id)

        if job.is_terminal:
            await self._finish(job)
        return job

    async def _finish(self, job: ImportJob) -> None:
        self._terminal = True
        self.state = TERMINAL_STATES[job.status]

        if job.has_row_errors and not self.has_fetched_errors:
            self.has_fetched_errors = True
            await self._fetch_errors(job.job_id)

        await self._apply_outcome(job)

    async def _fetch_errors(self, job_id: int) -> None:
        try:
            self.errors = await self.client.get_job_errors(job_id)
        except Exception as e:
            logger.warning("Could not fetch row errors of import job %d: %s", job_id, e)
            return
        if self.errors:
            logger.info("Import job %d reported %d row error(s)", job_id, len(self.errors))

    async def _apply_outcome(self, job: ImportJob) -> None:
        if job.status is ImportStatus.COMPLETED:
            if job.failed_records > 0:
                if job.successful_records > 0:
                    await self._refresh_once()
                self._notify_once(
                    NotificationKind.WARNING,
                    "Warning",
                    f"Upload completed with errors. {job.successful_records} successful, "
                    f"{job.failed_records} failed.",
                )
            elif job.successful_records > 0:
                await self._refresh_once()
                self._notify_once(
                    NotificationKind.SUCCESS,
                    "Success",
                    f"Upload completed successfully. {job.successful_records} records imported.",
                )
            else:
                self._notify_once(
                    NotificationKind.INFO,
                    "Info",
                    "Upload completed. No records were imported.",
                )
        else:
            self._notify_once(
                NotificationKind.DANGER,
                "Error",
                f"Upload failed: {job.error_message or 'no error message from server'}",
            )

    async def _refresh_once(self) -> None:
        if self.has_refreshed:
            return
        self.has_refreshed = True
        if self.on_refresh is None:
            return
        try:
            result = self.on_refresh()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Refresh after import job %s failed", self.job_id)

    def _notify_once(self, kind: NotificationKind, title: str, message: str) -> None:
        if self.has_notified:
            return
        self.has_notified = True
        try:
            self.notifier.notify(Notification(kind, title, message))
        except Exception:
            logger.exception("Could not deliver notification for import job %s", self.job_id)
