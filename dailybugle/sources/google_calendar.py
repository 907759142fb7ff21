from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import re
from typing import Any, Callable
from urllib.parse import quote

import httpx

from ..newspaper.forecast import CalendarEvent, CalendarEventType, CalendarSource


EVENTS_ENDPOINT = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"

# Refresh a little before the token actually expires.
EXPIRY_MARGIN = timedelta(seconds=60)

_FRACTION = re.compile(r"\.(\d+)")

Classifier = Callable[[str], CalendarEventType]


def classify_crm_dispatch(title: str) -> CalendarEventType:
    if "[PN]" in title.upper():
        return CalendarEventType.PUSH_NOTIFICATION
    return CalendarEventType.UNDEFINED


def classify_campaign(title: str) -> CalendarEventType:
    return CalendarEventType.CAMPAIGN


def classify_dev_milestone(title: str) -> CalendarEventType:
    if "code freeze" in title.lower():
        return CalendarEventType.CODE_FREEZE
    return CalendarEventType.UNDEFINED


CLASSIFIERS: dict[str, Classifier] = {
    "push_notifications": classify_crm_dispatch,
    "campaigns": classify_campaign,
    "dev_milestones": classify_dev_milestone,
}


class GoogleAuth:
    """Holds an OAuth2 access token and refreshes it when it has expired."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        access_token: str,
        refresh_token: str | None = None,
        expiry: datetime | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._expiry = expiry
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    def expired(self, now: datetime | None = None) -> bool:
        if self._expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self._expiry - EXPIRY_MARGIN

    async def authorization_header(self, client: httpx.AsyncClient) -> dict[str, str]:
        async with self._lock:
            if self.expired() and self._refresh_token:
                await self._refresh(client)
        return {"Authorization": f"Bearer {self._access_token}"}

    async def _refresh(self, client: httpx.AsyncClient) -> None:
        self._logger.info("Refreshing Google access token")
        response = await client.post(
            TOKEN_ENDPOINT,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
        )
        response.raise_for_status()
        payload = response.json()
        self._access_token = payload["access_token"]
        expires_in = payload.get("expires_in")
        if expires_in is not None:
            self._expiry = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


@dataclass
class GoogleCalendarSettings:
    calendar_id: str
    kind: str
    working_hours_start: int
    working_hours_end: int
    timeout_seconds: int
    user_agent: str


class GoogleCalendarSource(CalendarSource):
    def __init__(self, settings: GoogleCalendarSettings, auth: GoogleAuth) -> None:
        if settings.kind not in CLASSIFIERS:
            raise ValueError(f"Unknown calendar kind: {settings.kind}")
        self._settings = settings
        self._auth = auth
        self._classify = CLASSIFIERS[settings.kind]
        self._logger = logging.getLogger(__name__)

    def working_hours(self, day: datetime) -> tuple[datetime, datetime]:
        midnight = day.replace(hour=0, minute=0, second=0, microsecond=0)
        return (
            midnight + timedelta(hours=self._settings.working_hours_start),
            midnight + timedelta(hours=self._settings.working_hours_end),
        )

    async def fetch_events_by_day(self, day: datetime) -> list[CalendarEvent]:
        start, end = self.working_hours(day)
        url = EVENTS_ENDPOINT.format(calendar_id=quote(self._settings.calendar_id, safe=""))
        events: list[CalendarEvent] = []
        page_token: str | None = None

        async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
            while True:
                headers = {"User-Agent": self._settings.user_agent}
                headers.update(await self._auth.authorization_header(client))
                params: dict[str, Any] = {
                    "timeMin": start.isoformat(),
                    "timeMax": end.isoformat(),
                    "singleEvents": "true",
                    "orderBy": "startTime",
                }
                if page_token:
                    params["pageToken"] = page_token

                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                payload = response.json()

                events.extend(self._parse_event(item) for item in payload.get("items") or [])
                page_token = payload.get("nextPageToken")
                if not page_token:
                    break

        self._logger.debug(
            "Fetched %s events from %s calendar %s", len(events), self._settings.kind, self._settings.calendar_id
        )
        return events

    def _parse_event(self, item: dict[str, Any]) -> CalendarEvent:
        title = item.get("summary") or ""
        return CalendarEvent(
            title=title,
            type=self._classify(title),
            starts_at=_event_time(item, "start"),
            ends_at=_event_time(item, "end"),
        )


def _event_time(item: dict[str, Any], key: str) -> datetime:
    value = (item.get(key) or {}).get("dateTime")
    if not value:
        raise ValueError(f"Calendar event {item.get('id', '?')} has no {key} time")
    return parse_rfc3339(value)


def parse_rfc3339(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits
    value = _FRACTION.sub(lambda match: "." + match.group(1).ljust(6, "0")[:6], value)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_token_expiry(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = parse_rfc3339(value)
    # A zero expiry means the token never expires.
    if parsed.year <= 1:
        return None
    return parsed
