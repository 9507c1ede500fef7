"""
The download scheduler: admits queued jobs under a concurrency ceiling, paces
launches to stay clear of the service's abuse limits, and retries failures.

All collection mutations happen on the event loop thread between awaits, so a
job is always in exactly one of ``pending``, ``active``, ``completed`` or
``failed``.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Optional, Union

from pydantic import ValidationError

from f1tv_dl.api.resolver import ContentResolver
from f1tv_dl.exceptions import (
    ConfigurationError,
    InvalidURLError,
    RateLimitedError,
    classify_error,
    is_retryable,
)
from f1tv_dl.media.muxer import Muxer
from f1tv_dl.models.config import MAX_CONCURRENT_CEILING, JobConfig, QueueSettings
from f1tv_dl.models.job import Job, JobProgress, JobState
from f1tv_dl.models.stats import QueueStats
from f1tv_dl.utils.formatting import format_duration
from f1tv_dl.utils.url import build_output_path, is_f1tv_url

from .events import EventBus, EventType
from .stream_plan import StreamPlanBuilder, StreamSelection

log = logging.getLogger(__name__)

# Launch spacing between concurrent admissions is half the delay, capped here.
MAX_LAUNCH_SPACING = 10.0


class DownloadQueue:
    """Schedules download jobs and reports their lifecycle on an EventBus."""

    def __init__(
        self,
        resolver: ContentResolver,
        muxer: Muxer,
        settings: Optional[QueueSettings] = None,
        plan_builder: Optional[StreamPlanBuilder] = None,
        events: Optional[EventBus] = None,
        poll_interval: float = 1.0,
    ):
        self.settings = settings or QueueSettings()
        self.resolver = resolver
        self.muxer = muxer
        self.plan_builder = plan_builder or StreamPlanBuilder(resolver)
        self.events = events or EventBus()
        self.poll_interval = poll_interval

        self.max_concurrent = min(max(1, self.settings.max_concurrent), MAX_CONCURRENT_CEILING)
        self.delay = self.settings.delay
        self.retry_attempts = self.settings.retry_attempts
        self.retry_delay = self.settings.retry_delay
        self.rate_limit_backoff = self.settings.rate_limit_backoff

        self.pending: deque[Job] = deque()
        self.active: dict[str, Job] = {}
        self.completed: list[Job] = []
        self.failed: list[Job] = []
        self.stats = QueueStats()

        self.is_running = False
        self.is_paused = False

        self._wakeup = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._job_tasks: dict[str, asyncio.Task] = {}
        self._next_admission_at = 0.0

    # ------------------------------------------------------------------
    # Public control surface
    # ------------------------------------------------------------------

    def add_download(self, config: Union[JobConfig, dict[str, Any]]) -> str:
        """
        Queues a download and starts the queue if it is idle.

        Raises:
            InvalidURLError: The URL is not an F1TV content URL.
            ConfigurationError: Any other field of the request is invalid.
        """
        url = config.url if isinstance(config, JobConfig) else str(config.get("url", ""))
        if not is_f1tv_url(url):
            raise InvalidURLError(f"Invalid F1TV URL: {url}")
        if not isinstance(config, JobConfig):
            try:
                config = JobConfig(**config)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid download options: {e}") from e

        job = Job(config=config)
        self.pending.append(job)
        self.stats.total_queued += 1
        log.info(f"📋 Added to queue: {job.name} (Queue position: {len(self.pending)})")
        self.events.emit(EventType.JOB_ADDED, job, position=len(self.pending))

        if not self.is_running:
            self.start()
        else:
            self._wake()
        return job.id

    def start(self) -> None:
        """Starts the processing loop. Must be called from a running event loop."""
        if self.is_running:
            log.debug("Queue is already running.")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop; the queue will start on the next start() call.")
            return

        self.is_running = True
        self.is_paused = False
        log.info(
            f"🚀 Starting download queue (Max concurrent: {self.max_concurrent}, "
            f"Delay: {self.delay}s)"
        )
        if self.max_concurrent > 1:
            log.warning(
                f"[yellow]⚠️  Running {self.max_concurrent} downloads at once "
                "increases the risk of rate limiting or account restrictions.[/yellow]"
            )
        self.events.emit(EventType.QUEUE_STARTED, max_concurrent=self.max_concurrent)

        if self._loop_task is not None and not self._loop_task.done():
            # Restarted while the previous loop was still draining.
            self._wake()
            return
        self.stats.mark_started()
        self._loop_task = loop.create_task(self._process_queue())

    def stop(self) -> None:
        """Stops admitting new jobs. Running downloads are left to finish."""
        if not self.is_running:
            return
        self.is_running = False
        log.info("⏹️  Stopping download queue...")
        self.events.emit(EventType.QUEUE_STOPPED)
        self._wake()

    def pause(self) -> None:
        if self.is_paused:
            return
        self.is_paused = True
        log.info("⏸️  Download queue paused")
        self.events.emit(EventType.QUEUE_PAUSED)

    def resume(self) -> None:
        if not self.is_paused:
            return
        self.is_paused = False
        log.info("▶️  Download queue resumed")
        self.events.emit(EventType.QUEUE_RESUMED)
        self._wake()

    async def join(self) -> None:
        """Waits until the processing loop has finished."""
        if self._loop_task is not None:
            await self._loop_task

    async def run(self) -> None:
        """Starts the queue and waits for it to drain."""
        self.start()
        await self.join()

    def get_status(self) -> dict[str, Any]:
        return {
            "pending": len(self.pending),
            "active": len(self.active),
            "completed": len(self.completed),
            "failed": len(self.failed),
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "config": {
                "max_concurrent": self.max_concurrent,
                "delay": self.delay,
                "retry_attempts": self.retry_attempts,
                "retry_delay": self.retry_delay,
                "rate_limit_backoff": self.rate_limit_backoff,
            },
            "jobs": {
                "pending": [self._job_summary(j) for j in self.pending],
                "active": [self._job_summary(j) for j in self.active.values()],
                "completed": [self._job_summary(j) for j in self.completed],
                "failed": [self._job_summary(j) for j in self.failed],
            },
            "stats": self.stats.as_dict(),
        }

    def clear_history(self) -> None:
        self.completed.clear()
        self.failed.clear()
        log.info("🧹 Cleared download history")

    @staticmethod
    def _job_summary(job: Job) -> dict[str, Any]:
        return {
            "id": job.id,
            "name": job.name,
            "url": job.url,
            "state": job.state.value,
            "attempts": job.attempts,
            "progress": job.progress.percent,
            "output_path": job.output_path,
            "error": job.last_error,
        }

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def retry_delay_for(self, attempts: int) -> float:
        """Exponential backoff for the n-th failed attempt: d, 2d, 4d, ..."""
        return self.retry_delay * 2 ** max(0, attempts - 1)

    async def _backoff(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def _pace(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _wake(self) -> None:
        self._wakeup.set()

    async def _wait(self, timeout: Optional[float] = None) -> None:
        """Sleeps until woken by a state change or the timeout elapses."""
        timeout = self.poll_interval if timeout is None else timeout
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    async def _process_queue(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            if not self.is_running:
                if not self.active:
                    break
                await self._wait()
                continue
            if self.is_paused:
                await self._wait()
                continue

            if self.pending and len(self.active) < self.max_concurrent:
                wait_for = self._next_admission_at - loop.time()
                if wait_for > 0:
                    await self._wait(wait_for)
                    continue
                self._admit(self.pending.popleft())
                if self.pending and self.max_concurrent > 1:
                    await self._pace(min(self.delay / 2, MAX_LAUNCH_SPACING))
            elif not self.pending and not self.active:
                break
            else:
                await self._wait()

        self._finish()

    def _admit(self, job: Job) -> None:
        job.transition(JobState.DOWNLOADING)
        self.active[job.id] = job
        self.stats.peak_active = max(self.stats.peak_active, len(self.active))
        self._job_tasks[job.id] = asyncio.get_running_loop().create_task(
            self._run_job(job)
        )

    def _after_job_finished(self) -> None:
        """Spaces the next download from the one that just ended."""
        if not self.active and self.pending and self.delay > 0 and self.is_running:
            log.info(f"⏳ Waiting {self.delay}s before next download...")
            self._next_admission_at = asyncio.get_running_loop().time() + self.delay

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def _run_job(self, job: Job) -> None:
        log.info(f"\n⬇️  [{job.attempts}/{self.retry_attempts}] Starting: {job.name}")
        self.events.emit(EventType.JOB_STARTED, job, attempt=job.attempts)
        try:
            await self._execute(job)
        except Exception as e:
            await self._handle_task_error(job, e)
        else:
            self._complete(job)
        finally:
            self._job_tasks.pop(job.id, None)
            self._wake()

    async def _execute(self, job: Job) -> None:
        content = await self.resolver.get_content_info(job.url)
        selection = StreamSelection.from_job_config(job.config)
        plan = await self.plan_builder.build_plan(content, selection)

        output_path = build_output_path(
            content.name,
            selection.container,
            selection.channel,
            content.is_race,
            job.config.output_directory,
        )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        job.output_path = str(output_path)

        await self.muxer.run(plan, output_path, lambda p: self._on_progress(job, p))

    def _on_progress(self, job: Job, progress: JobProgress) -> None:
        job.progress = progress
        self.events.emit(
            EventType.JOB_PROGRESS,
            job,
            percent=progress.percent,
            frames=progress.frames,
            fps=progress.fps,
            bitrate=progress.bitrate,
            timemark=progress.timemark,
        )

    def _complete(self, job: Job) -> None:
        self.active.pop(job.id, None)
        job.transition(JobState.COMPLETED)
        self.completed.append(job)
        self.stats.completed += 1
        log.info(f"[green]✅ Completed: {job.name}[/green]")
        self.events.emit(EventType.JOB_COMPLETED, job, output_path=job.output_path)
        self._after_job_finished()

    async def _handle_task_error(self, job: Job, error: Exception) -> None:
        error = classify_error(error)
        job.last_error = str(error)
        log.error(f"[red]❌ Error downloading {job.name}: {error}[/red]")

        can_retry = job.attempts < self.retry_attempts
        if isinstance(error, RateLimitedError):
            self.stats.rate_limited += 1
            if can_retry:
                log.warning(
                    f"[yellow]⚠️  Rate limited! Backing off for "
                    f"{self.rate_limit_backoff}s...[/yellow]"
                )
                await self._backoff(self.rate_limit_backoff)
                self._requeue(job)
                return
        elif can_retry and is_retryable(error):
            wait = self.retry_delay_for(job.attempts)
            log.info(
                f"🔄 Retrying in {wait}s... "
                f"(Attempt {job.attempts + 1}/{self.retry_attempts})"
            )
            await self._backoff(wait)
            self._requeue(job)
            return

        self._fail(job, error)

    def _requeue(self, job: Job) -> None:
        # Leaves active and re-enters pending at the head in one step.
        self.active.pop(job.id, None)
        job.transition(JobState.QUEUED)
        self.pending.appendleft(job)
        self.stats.retries += 1
        self.events.emit(EventType.JOB_RETRYING, job, attempt=job.attempts, error=job.last_error)

    def _fail(self, job: Job, error: Exception) -> None:
        self.active.pop(job.id, None)
        job.transition(JobState.FAILED)
        self.failed.append(job)
        self.stats.failed += 1
        log.error(
            f"[red]❌ Failed after {job.attempts} attempt(s): {job.name}[/red]"
        )
        self.events.emit(EventType.JOB_FAILED, job, error=str(error), attempts=job.attempts)
        self._after_job_finished()

    def _finish(self) -> None:
        self.is_running = False
        self.stats.mark_finished()
        duration = self.stats.duration_seconds
        stats = self.stats

        log.info("\n📊 Queue Summary:")
        log.info(f"   Duration: {format_duration(duration)}")
        log.info(f"   [green]✅ Completed: {stats.completed}[/green]")
        log.info(f"   [red]❌ Failed: {stats.failed}[/red]")
        if self.pending:
            log.info(f"   📋 Remaining: {len(self.pending)}")
        for job in self.failed:
            log.info(f"      - {job.name}: {job.last_error}")

        self.events.emit(
            EventType.QUEUE_COMPLETED,
            duration=round(duration),
            completed=stats.completed,
            failed=stats.failed,
            total=stats.total_queued,
            remaining=len(self.pending),
        )
