from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
import logging

from .base import DEFAULT_AUTHOR_NAME, Clock, Page, Writer
from .mrkdwn import bold, emoji, kitchen_time, section_block


class CalendarEventType(Enum):
    UNDEFINED = "undefined"
    PUSH_NOTIFICATION = "push_notification"
    CAMPAIGN = "campaign"
    CODE_FREEZE = "code_freeze"


@dataclass(frozen=True)
class CalendarEvent:
    title: str
    type: CalendarEventType
    starts_at: datetime
    ends_at: datetime

    def __post_init__(self) -> None:
        if self.starts_at > self.ends_at:
            raise ValueError(f"Calendar event {self.title!r} ends before it starts")


class CalendarSource(ABC):
    @abstractmethod
    async def fetch_events_by_day(self, day: datetime) -> list[CalendarEvent]:
        """Fetch the events scheduled during the working hours of the given day."""
        raise NotImplementedError


def merge_overlapping_events(events: list[CalendarEvent]) -> list[CalendarEvent]:
    """
    Collapses overlapping or touching [starts_at, ends_at) intervals into the
    minimal ordered list of disjoint intervals. The merged event keeps the
    title and type of the earliest event in its run.
    """
    if not events:
        return []

    ordered = sorted(events, key=lambda event: (event.starts_at, event.ends_at))
    merged = [ordered[0]]
    for event in ordered[1:]:
        current = merged[-1]
        if event.starts_at <= current.ends_at:
            if event.ends_at > current.ends_at:
                merged[-1] = replace(current, ends_at=event.ends_at)
            continue
        merged.append(event)
    return merged


@dataclass
class Forecast:
    push_notifications: list[CalendarEvent]
    campaigns: list[CalendarEvent]
    code_freezes: list[CalendarEvent]

    @classmethod
    def from_events(cls, events: list[CalendarEvent]) -> Forecast:
        forecast = cls(push_notifications=[], campaigns=[], code_freezes=[])
        for event in events:
            if event.type is CalendarEventType.PUSH_NOTIFICATION:
                forecast.push_notifications.append(event)
            elif event.type is CalendarEventType.CAMPAIGN:
                forecast.campaigns.append(event)
            elif event.type is CalendarEventType.CODE_FREEZE:
                forecast.code_freezes.append(event)
        return forecast

    @property
    def freezing(self) -> bool:
        return bool(self.code_freezes)

    def summary(self) -> str:
        if self.code_freezes:
            return emoji("snowflake") + " The day is freezingly cold due to the Code Freeze."
        if self.push_notifications and self.campaigns:
            return emoji("thunder_cloud_and_rain") + " The day is cloudy due to Push Notifications and Campaigns."
        if self.push_notifications:
            return emoji("thunder_cloud_and_rain") + " The day is cloudy due to Push Notifications."
        if self.campaigns:
            return emoji("thunder_cloud_and_rain") + " The day is cloudy due to Campaigns."
        return emoji("sunny") + " The day is sunny and the sky is clear."

    def recommendation(self) -> str:
        if self.code_freezes:
            return "Totally bad day for a release!"
        if self.push_notifications or self.campaigns:
            return "Be careful with a release today!"
        return "Looks like a good day for a release!"


class ReleaseForecastWriter(Writer):
    def __init__(
        self,
        calendars: list[CalendarSource],
        clock: Clock,
        timezone_label: str = "SGT",
        author: str = DEFAULT_AUTHOR_NAME,
    ) -> None:
        self._calendars = list(calendars)
        self._clock = clock
        self._timezone_label = timezone_label
        self._author = author
        self._logger = logging.getLogger(__name__)

    async def write(self) -> Page:
        now = self._clock()
        results = await asyncio.gather(
            *(calendar.fetch_events_by_day(now) for calendar in self._calendars), return_exceptions=True
        )
        # every fetch has settled; the first failure in calendar order wins
        for result in results:
            if isinstance(result, BaseException):
                raise result
        events = [event for result in results for event in result]
        self._logger.debug("Fetched %s calendar events from %s calendars", len(events), len(self._calendars))

        forecast = Forecast.from_events(events)
        page = Page(
            headline_emoji="sun_behind_rain_cloud",
            headline="Release Forecast",
            author=self._author,
        )
        lines = [f"{forecast.summary()} {forecast.recommendation()}"]

        if not forecast.freezing:
            lines.extend(self._push_notification_breakdown(forecast, now))
            lines.extend(self._campaign_breakdown(forecast, now))

        page.blocks.append(section_block("\n".join(lines)))
        return page

    def _push_notification_breakdown(self, forecast: Forecast, now: datetime) -> list[str]:
        if not forecast.push_notifications:
            return []
        lines = [
            "",
            "Thunderstorm of Push Notifications is expected during the "
            f"following hours ({self._timezone_label}):",
        ]
        for event in merge_overlapping_events(forecast.push_notifications):
            lines.append(bold("    " + kitchen_time(_local(event.starts_at, now))))
        return lines

    def _campaign_breakdown(self, forecast: Forecast, now: datetime) -> list[str]:
        if not forecast.campaigns:
            return []
        lines = [
            "",
            f"Heavy rain of Campaigns is expected during the following hours ({self._timezone_label}):",
        ]
        for event in merge_overlapping_events(forecast.campaigns):
            starts = kitchen_time(_local(event.starts_at, now))
            ends = kitchen_time(_local(event.ends_at, now))
            lines.append(bold(f"    {starts} - {ends}"))
        return lines


def _local(value: datetime, now: datetime) -> datetime:
    if now.tzinfo is None or value.tzinfo is None:
        return value
    return value.astimezone(now.tzinfo)
