from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
import itertools
import re
from typing import Protocol

from celery.schedules import ParseException, crontab
import loguru
from loguru import logger

from plaidsync.infra.clients.plaid import PlaidClient
from plaidsync.models.settings import FREQUENCIES, Frequency, RefreshSetting
from plaidsync.storage.stores import Stores
from plaidsync.sync.engine import SyncEngine

DEFAULT_SETTLE_SECONDS = 2.0

FREQUENCY_SCHEDULES: dict[str, str] = {
    "daily": "0 0 * * *",  # midnight every day
    "weekly": "0 0 * * 0",  # midnight every Sunday
    "monthly": "0 0 1 * *",  # midnight on the 1st
}

TriggerCallback = Callable[[], Awaitable[None]]

# A bare 7 in the day-of-week field is Sunday; celery only knows 0.
_SUNDAY_AS_SEVEN = re.compile(r"(?<![\d/])7(?!\d)")


class InvalidScheduleError(ValueError):
    """Raised for an unknown frequency or a malformed cron expression."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_cron(expression: str) -> crontab:
    """
    Parse a five-field cron expression (minute hour day-of-month month
    day-of-week) into a celery crontab. Day-of-week accepts 7 for Sunday;
    a leading seconds field is not supported.

    Raises:
        InvalidScheduleError: If the expression is not well formed
    """
    fields = expression.split()
    if len(fields) != 5:
        raise InvalidScheduleError(
            f"Invalid cron expression {expression!r}: expected 5 fields, "
            f"got {len(fields)}"
        )
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    day_of_week = _SUNDAY_AS_SEVEN.sub("0", day_of_week)
    try:
        return crontab(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
            nowfun=_utcnow,
        )
    except (ValueError, ParseException) as e:
        raise InvalidScheduleError(f"Invalid cron expression {expression!r}: {e}") from e


def resolve_schedule(frequency: str, custom_schedule: str | None = None) -> str:
    """Map a refresh frequency to the cron expression that drives it."""
    if frequency not in FREQUENCIES:
        raise InvalidScheduleError(
            f"Unknown frequency {frequency!r}. "
            "Expected one of: daily, weekly, monthly, custom."
        )
    if frequency != "custom":
        return FREQUENCY_SCHEDULES[frequency]
    if not custom_schedule or not custom_schedule.strip():
        raise InvalidScheduleError(
            "Custom schedule must be provided when frequency is 'custom'"
        )
    expression = custom_schedule.strip()
    parse_cron(expression)
    return expression


def seconds_until_next(schedule: crontab, last_run_at: datetime) -> float:
    """Seconds from now until the first scheduled instant after last_run_at."""
    remaining = schedule.remaining_estimate(last_run_at)
    return max(0.0, remaining.total_seconds())


@dataclass(frozen=True, slots=True)
class TriggerHandle:
    """Identity of one registered recurring trigger."""

    trigger_id: int
    expression: str


class TriggerBackend(Protocol):
    """Registers recurring triggers that call back with no arguments."""

    def register(self, expression: str, callback: TriggerCallback) -> TriggerHandle:
        ...

    def cancel(self, handle: TriggerHandle) -> bool:
        ...

    def shutdown(self) -> None:
        ...


class CronTriggerBackend:
    """
    asyncio implementation of TriggerBackend.

    Each trigger is a task that sleeps until the next cron instant and then
    spawns the callback as its own task. Cancelling a trigger stops future
    firings; a firing already in flight runs to completion.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._ids = itertools.count(1)
        self._timers: dict[int, asyncio.Task[None]] = {}
        self._firings: set[asyncio.Task[None]] = set()

    @property
    def active_count(self) -> int:
        return len(self._timers)

    def register(self, expression: str, callback: TriggerCallback) -> TriggerHandle:
        schedule = parse_cron(expression)
        handle = TriggerHandle(trigger_id=next(self._ids), expression=expression)
        loop = asyncio.get_running_loop()
        self._timers[handle.trigger_id] = loop.create_task(
            self._run(schedule, callback), name=f"trigger-{handle.trigger_id}"
        )
        return handle

    def cancel(self, handle: TriggerHandle) -> bool:
        task = self._timers.pop(handle.trigger_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def shutdown(self) -> None:
        for task in self._timers.values():
            task.cancel()
        self._timers.clear()

    async def _run(self, schedule: crontab, callback: TriggerCallback) -> None:
        last_run_at = self._clock()
        while True:
            delay = seconds_until_next(schedule, last_run_at)
            # Anchor on the scheduled instant, not the wake-up time, so an
            # early wake-up cannot fire the same instant twice.
            last_run_at = self._clock() + timedelta(seconds=delay)
            await self._sleep(delay)
            firing = asyncio.create_task(callback())
            self._firings.add(firing)
            firing.add_done_callback(self._firings.discard)


class SchedulerLogger:
    """Handles all logging for RefreshScheduler with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def scheduled(self, user_id: str, frequency: str, expression: str) -> None:
        self._logger.bind(user_id=user_id, frequency=frequency).info(
            "Scheduled {} transaction sync for user {} ({})",
            frequency,
            user_id,
            expression,
        )

    def replaced(self, user_id: str, handle: TriggerHandle) -> None:
        self._logger.bind(user_id=user_id, trigger_id=handle.trigger_id).debug(
            "Cancelled previous trigger {} for user {}", handle.trigger_id, user_id
        )

    def skipped_unlinked(self, user_id: str) -> None:
        self._logger.bind(user_id=user_id).warning(
            "Skipping scheduled sync for user {}: no stored credential", user_id
        )

    def refresh_failed(self, user_id: str, error: Exception) -> None:
        self._logger.bind(user_id=user_id).warning(
            "Error refreshing transactions for user {}: {}", user_id, error
        )

    def sync_completed(
        self, user_id: str, added: int, modified: int, removed: int
    ) -> None:
        self._logger.bind(user_id=user_id).info(
            "Scheduled transaction sync completed for user {}: "
            "{} added, {} modified, {} removed",
            user_id,
            added,
            modified,
            removed,
        )

    def sync_failed(self, user_id: str, error: Exception) -> None:
        self._logger.bind(user_id=user_id).exception(
            "Scheduled transaction sync failed for user {}: {}", user_id, error
        )


class RefreshScheduler:
    """
    Owns at most one recurring sync trigger per user.

    A firing asks Plaid to refresh the item (best effort), waits the settle
    interval, then runs SyncEngine.advance_sync. Failures are logged and never
    escape the firing, so later firings are unaffected.
    """

    def __init__(
        self,
        plaid_client: PlaidClient,
        stores: Stores,
        engine: SyncEngine,
        backend: TriggerBackend,
        *,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._plaid_client = plaid_client
        self._stores = stores
        self._engine = engine
        self._backend = backend
        self._settle_seconds = settle_seconds
        self._sleep = sleep
        self._handles: dict[str, TriggerHandle] = {}
        self._logger = SchedulerLogger()

    def handle_for(self, user_id: str) -> TriggerHandle | None:
        return self._handles.get(user_id)

    def configure(
        self,
        user_id: str,
        frequency: Frequency,
        custom_schedule: str | None = None,
    ) -> RefreshSetting:
        """
        Replace the user's trigger with one for the given frequency.

        Raises:
            InvalidScheduleError: Before any state changes, if the frequency
                or custom expression is invalid
            NotLinkedError: If the user has no stored credential
        """
        expression = resolve_schedule(frequency, custom_schedule)
        self._stores.credentials.require(user_id)

        previous = self._handles.pop(user_id, None)
        if previous is not None:
            self._backend.cancel(previous)
            self._logger.replaced(user_id, previous)

        self._handles[user_id] = self._backend.register(
            expression, lambda: self.fire(user_id)
        )

        existing = self._stores.refresh_settings.get(user_id)
        setting = RefreshSetting(
            frequency=frequency,
            custom_schedule=expression if frequency == "custom" else None,
            last_refreshed=existing.last_refreshed if existing else None,
        )
        self._stores.refresh_settings.set(user_id, setting)
        self._logger.scheduled(user_id, frequency, expression)
        return setting

    def cancel(self, user_id: str) -> bool:
        handle = self._handles.pop(user_id, None)
        if handle is None:
            return False
        return self._backend.cancel(handle)

    def shutdown(self) -> None:
        self._handles.clear()
        self._backend.shutdown()

    async def request_refresh(self, user_id: str) -> bool:
        """
        Ask Plaid to refresh a user's item, then wait the settle interval.

        Returns:
            True if Plaid accepted the refresh; failures are logged, not raised
        """
        credential = self._stores.credentials.require(user_id)
        refreshed = False
        try:
            await asyncio.to_thread(
                self._plaid_client.refresh_transactions, credential.access_token
            )
            refreshed = True
        except Exception as e:
            self._logger.refresh_failed(user_id, e)
        await self._sleep(self._settle_seconds)
        return refreshed

    async def fire(self, user_id: str) -> None:
        """Run one scheduled refresh-and-sync for a user."""
        if not self._stores.credentials.is_linked(user_id):
            self._logger.skipped_unlinked(user_id)
            return
        try:
            await self.request_refresh(user_id)
            outcome = await self._engine.advance_sync(user_id)
        except Exception as e:
            self._logger.sync_failed(user_id, e)
            return
        self._logger.sync_completed(
            user_id, len(outcome.added), len(outcome.modified), len(outcome.removed)
        )
