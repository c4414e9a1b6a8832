"""Per-tick monitor snapshot handed to renderers and MCP clients."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .alerting import AlertState
from .models import SectionCount, StatusCount


class CountItem(BaseModel):
    label: str = Field(description="Section name or HTTP status code.")
    count: int = Field(ge=0, description="Number of requests.")


class AlertSnapshot(BaseModel):
    firing: bool = Field(description="Average traffic is above the threshold.")
    recovering: bool = Field(description="The alert recently stopped firing.")
    recovery_countdown: int = Field(ge=0, description="Ticks left before recovery clears.")
    threshold: float = Field(description="Requests per second that trigger the alert.")
    interval_seconds: int = Field(description="Trailing interval the average is taken over.")
    average_rate: float = Field(ge=0.0, description="Requests per second over the interval.")

    @classmethod
    def from_state(
        cls, state: AlertState, *, threshold: float, interval_seconds: int, average_rate: float
    ) -> AlertSnapshot:
        return cls(
            firing=state.firing,
            recovering=state.recovering,
            recovery_countdown=state.recovery_countdown,
            threshold=threshold,
            interval_seconds=interval_seconds,
            average_rate=average_rate,
        )


class MonitorSnapshot(BaseModel):
    log_file: str
    begin: datetime = Field(description="Start of the display window (inclusive).")
    end: datetime = Field(description="End of the display window.")
    generated_at: datetime
    granularity: int = Field(ge=1, description="Number of traffic buckets.")
    bucket_seconds: float = Field(description="Width of one traffic bucket in seconds.")
    section_counts: list[CountItem] = Field(default_factory=list)
    status_counts: list[CountItem] = Field(default_factory=list)
    traffic: list[int] = Field(default_factory=list, description="Requests per bucket.")
    alert: AlertSnapshot


def section_items(counts: list[SectionCount]) -> list[CountItem]:
    return [CountItem(label=c.section, count=c.count) for c in counts]


def status_items(counts: list[StatusCount]) -> list[CountItem]:
    return [CountItem(label=str(c.status), count=c.count) for c in counts]
