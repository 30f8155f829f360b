from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

Frequency = Literal["daily", "weekly", "monthly", "custom"]

FREQUENCIES: tuple[Frequency, ...] = ("daily", "weekly", "monthly", "custom")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


@dataclass(slots=True)
class RefreshSetting:
    """Per-user refresh configuration. Replaced wholesale on reconfiguration."""

    frequency: Frequency
    custom_schedule: str | None = None
    last_refreshed: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    """A webhook delivery recorded against the user owning its item."""

    webhook_type: str | None
    webhook_code: str | None
    payload: dict[str, Any]
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
