from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Optional

from src.careplan.clock import Clock, system_clock
from src.careplan.config import settings
from src.careplan.domain.models.reminder import Reminder, ReminderStatus
from src.careplan.infra.db.repositories import ReminderRepository
from src.careplan.services.reminders.notifiers import DeliveryResult, Notifier

logger = logging.getLogger("careplan.dispatcher")

SleepFunc = Callable[[float], Awaitable[None]]


class DispatchOutcome(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"


@dataclass
class SweepReport:
    """Counts for one sweep over the due set."""

    due: int = 0
    delivered: int = 0
    failed: int = 0
    exhausted: int = 0
    skipped: int = 0
    released: int = 0

    def record(self, outcome: DispatchOutcome) -> None:
        if outcome is DispatchOutcome.DELIVERED:
            self.delivered += 1
        elif outcome is DispatchOutcome.FAILED:
            self.failed += 1
        elif outcome is DispatchOutcome.EXHAUSTED:
            self.exhausted += 1
        else:
            self.skipped += 1


class ReminderDispatcher:
    """Periodically delivers due reminders and marks them completed.

    Every reminder is claimed (pending -> in_flight) with a compare-and-set
    before the notifier is called, so concurrent sweeps, including sweeps on
    other replicas sharing the store, deliver it at most once per claim.
    Failed deliveries go back to pending with exponential backoff until
    ``max_attempts`` is reached; after that the reminder stays pending and is
    left for manual follow-up (rescheduling resets its attempts).

    Ticks of one dispatcher never overlap: a tick that starts while the
    previous one is still running is skipped. Repository calls run in worker
    threads so a slow store does not stall the event loop.

    ``claim_timeout_seconds`` must exceed ``send_timeout_seconds``; otherwise a
    claim could be released while its send is still running.
    """

    def __init__(
        self,
        repository: ReminderRepository,
        notifier: Notifier,
        *,
        clock: Optional[Clock] = None,
        interval_seconds: Optional[float] = None,
        send_timeout_seconds: Optional[float] = None,
        claim_timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._clock = clock or system_clock
        self._interval = settings.dispatcher_interval_seconds if interval_seconds is None else interval_seconds
        self._send_timeout = (
            settings.dispatcher_send_timeout_seconds if send_timeout_seconds is None else send_timeout_seconds
        )
        self._claim_timeout = (
            settings.dispatcher_claim_timeout_seconds if claim_timeout_seconds is None else claim_timeout_seconds
        )
        self._max_attempts = settings.dispatcher_max_attempts if max_attempts is None else max_attempts
        self._backoff_base = (
            settings.dispatcher_backoff_base_seconds if backoff_base_seconds is None else backoff_base_seconds
        )
        self._backoff_max = settings.dispatcher_backoff_max_seconds if backoff_max_seconds is None else backoff_max_seconds
        if self._claim_timeout <= self._send_timeout:
            raise ValueError(
                "DISPATCHER_CLAIM_TIMEOUT_SECONDS must be greater than DISPATCHER_SEND_TIMEOUT_SECONDS "
                f"(got {self._claim_timeout} <= {self._send_timeout})"
            )
        if self._max_attempts < 1:
            raise ValueError(f"DISPATCHER_MAX_ATTEMPTS must be at least 1, got {self._max_attempts}")
        self._sleep = sleep
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        """Start the periodic loop on the running event loop.

        Calling start on an already running dispatcher returns the existing
        task.
        """

        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.create_task(self._run_forever(), name="reminder-dispatcher")
        logger.info("Reminder dispatcher started (interval=%ss)", self._interval)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Reminder dispatcher stopped")

    async def run_once(self) -> Optional[SweepReport]:
        """Run a single sweep, or return None if one is already in progress."""

        if self._tick_lock.locked():
            logger.warning("Previous reminder sweep still running; skipping this tick")
            return None
        async with self._tick_lock:
            return await self._sweep()

    async def _run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep the loop alive; the next tick retries.
                logger.exception("Reminder sweep failed")
            await self._sleep(self._interval)

    async def _sweep(self) -> SweepReport:
        now = self._clock.now()
        logger.info("Running scheduled reminder job...")

        released = await asyncio.to_thread(
            self._repository.release_stale_claims,
            now - timedelta(seconds=self._claim_timeout),
            now=now,
        )
        if released:
            logger.warning("Released %d abandoned reminder claims", released)

        due = await asyncio.to_thread(self._repository.find_due, now, max_attempts=self._max_attempts)
        report = SweepReport(due=len(due), released=released)
        for reminder in due:
            report.record(await self._dispatch(reminder))

        logger.info(
            "Sent %d reminders (due=%d, failed=%d, exhausted=%d, skipped=%d)",
            report.delivered,
            report.due,
            report.failed,
            report.exhausted,
            report.skipped,
        )
        return report

    async def _dispatch(self, reminder: Reminder) -> DispatchOutcome:
        claimed_at = self._clock.now()
        claimed = await asyncio.to_thread(
            self._repository.transition,
            reminder.id,
            expected=ReminderStatus.PENDING,
            target=ReminderStatus.IN_FLIGHT,
            now=claimed_at,
            claimed_at=claimed_at,
        )
        if claimed is None:
            # Another sweep got there first.
            return DispatchOutcome.SKIPPED

        result = await self._send(claimed)
        finished_at = self._clock.now()

        if result.ok:
            completed = await asyncio.to_thread(
                self._repository.transition,
                claimed.id,
                expected=ReminderStatus.IN_FLIGHT,
                target=ReminderStatus.COMPLETED,
                now=finished_at,
                claimed_at=None,
                last_error=None,
            )
            if completed is None:
                await self._log_lost_claim(claimed)
            return DispatchOutcome.DELIVERED

        attempts = claimed.attempts + 1
        exhausted = attempts >= self._max_attempts
        await asyncio.to_thread(
            self._repository.transition,
            claimed.id,
            expected=ReminderStatus.IN_FLIGHT,
            target=ReminderStatus.PENDING,
            now=finished_at,
            attempts=attempts,
            next_attempt_at=None if exhausted else finished_at + self._backoff(attempts),
            claimed_at=None,
            last_error=result.error,
        )

        if exhausted:
            logger.error(
                "Giving up on reminder %s for patient %s after %d attempts: %s",
                claimed.id,
                claimed.patient_id,
                attempts,
                result.error,
            )
            return DispatchOutcome.EXHAUSTED

        logger.warning("Delivery of reminder %s failed (attempt %d): %s", claimed.id, attempts, result.error)
        return DispatchOutcome.FAILED

    async def _send(self, reminder: Reminder) -> DeliveryResult:
        try:
            return await asyncio.wait_for(
                self._notifier.send(reminder.patient_id, reminder.message),
                timeout=self._send_timeout,
            )
        except asyncio.TimeoutError:
            return DeliveryResult.failure(f"notifier timed out after {self._send_timeout}s")
        except Exception as exc:
            logger.exception("Notifier raised while sending reminder %s", reminder.id)
            return DeliveryResult.failure(repr(exc))

    async def _log_lost_claim(self, reminder: Reminder) -> None:
        current = await asyncio.to_thread(self._repository.get, reminder.id)
        if current is not None and current.status == ReminderStatus.COMPLETED:
            logger.info("Reminder %s was marked completed while its delivery was in flight", reminder.id)
        else:
            logger.warning("Reminder %s was delivered but its claim had been released", reminder.id)

    def _backoff(self, attempts: int) -> timedelta:
        seconds = self._backoff_base * (2 ** (attempts - 1))
        return timedelta(seconds=min(seconds, self._backoff_max))
