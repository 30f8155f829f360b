"""Transaction sync engine, refresh scheduler and webhook routing."""

from plaidsync.sync.engine import SyncEngine, SyncOutcome
from plaidsync.sync.merge import apply_delta
from plaidsync.sync.scheduler import (
    CronTriggerBackend,
    InvalidScheduleError,
    RefreshScheduler,
    TriggerBackend,
    TriggerHandle,
    resolve_schedule,
)
from plaidsync.sync.webhooks import DispatchResult, WebhookDispatcher

__all__ = [
    # Sync engine
    "SyncEngine",
    "SyncOutcome",
    "apply_delta",
    # Scheduling
    "CronTriggerBackend",
    "InvalidScheduleError",
    "RefreshScheduler",
    "TriggerBackend",
    "TriggerHandle",
    "resolve_schedule",
    # Webhooks
    "DispatchResult",
    "WebhookDispatcher",
]
