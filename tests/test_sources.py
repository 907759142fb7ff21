from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

import httpx

from dailybugle.newspaper.forecast import CalendarEventType
from dailybugle.sources.google_calendar import (
    GoogleAuth,
    GoogleCalendarSettings,
    GoogleCalendarSource,
    classify_campaign,
    classify_crm_dispatch,
    classify_dev_milestone,
    parse_token_expiry,
)
from dailybugle.sources.jira import JiraSettings, JiraTicketSource


SGT = ZoneInfo("Asia/Singapore")


def _response(url: str, payload: dict, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("GET", url))


def _jira_issue(key: str, status: str, histories: list[dict]) -> dict:
    return {
        "key": key,
        "fields": {"summary": f"Fix {key}", "status": {"name": status}},
        "changelog": {"histories": histories},
    }


def _jira_settings() -> JiraSettings:
    return JiraSettings(
        base_url="https://jira.example.com",
        username="bot",
        api_token="secret",
        jql='status = "Awaiting Review"',
        page_size=2,
        timeout_seconds=5,
        user_agent="dailybugle/test",
    )


class JiraTicketSourceTests(unittest.IsolatedAsyncioTestCase):
    async def test_paginates_and_finds_status_transition(self) -> None:
        url = "https://jira.example.com/rest/api/2/search"
        first = _response(
            url,
            {
                "total": 3,
                "issues": [
                    _jira_issue(
                        "MB-1",
                        "Awaiting Review",
                        [
                            {
                                "created": "2021-02-20T11:00:00.000+0800",
                                "items": [{"field": "status", "toString": "Awaiting Review"}],
                            }
                        ],
                    ),
                    _jira_issue("MB-2", "Awaiting Review", []),
                ],
            },
        )
        second = _response(
            url,
            {
                "total": 3,
                "issues": [
                    _jira_issue(
                        "MB-3",
                        "Awaiting Review",
                        [
                            {
                                "created": "2021-02-25T09:00:00.000+0800",
                                "items": [{"field": "assignee", "toString": "Awaiting Review"}],
                            }
                        ],
                    )
                ],
            },
        )

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_client.return_value.__aenter__.return_value
            instance.get = AsyncMock(side_effect=[first, second])
            tickets = await JiraTicketSource(_jira_settings()).fetch_tickets_awaiting_review()

        self.assertEqual([ticket.id for ticket in tickets], ["MB-1", "MB-2", "MB-3"])
        self.assertEqual(tickets[0].url, "https://jira.example.com/browse/MB-1")
        self.assertEqual(tickets[0].summary, "Fix MB-1")
        self.assertEqual(tickets[0].status, "Awaiting Review")
        self.assertEqual(
            tickets[0].status_since,
            datetime(2021, 2, 20, 3, 0, tzinfo=timezone.utc),
        )
        self.assertIsNone(tickets[1].status_since)
        self.assertIsNone(tickets[2].status_since)

        self.assertEqual(instance.get.await_count, 2)
        second_params = instance.get.call_args_list[1].kwargs["params"]
        self.assertEqual(second_params["startAt"], 2)
        self.assertEqual(second_params["expand"], "changelog")

    async def test_http_error_propagates(self) -> None:
        url = "https://jira.example.com/rest/api/2/search"
        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_client.return_value.__aenter__.return_value
            instance.get = AsyncMock(return_value=_response(url, {}, status=500))
            with self.assertRaises(httpx.HTTPStatusError):
                await JiraTicketSource(_jira_settings()).fetch_tickets_awaiting_review()


def _calendar(kind: str, auth: GoogleAuth | None = None) -> GoogleCalendarSource:
    return GoogleCalendarSource(
        GoogleCalendarSettings(
            calendar_id="team@group.calendar.google.com",
            kind=kind,
            working_hours_start=9,
            working_hours_end=19,
            timeout_seconds=5,
            user_agent="dailybugle/test",
        ),
        auth or GoogleAuth("client", "secret", "access-token"),
    )


def _google_event(title: str, start: str | None, end: str | None) -> dict:
    item: dict = {"id": title, "summary": title, "start": {}, "end": {}}
    if start:
        item["start"]["dateTime"] = start
    if end:
        item["end"]["dateTime"] = end
    return item


class ClassifierTests(unittest.TestCase):
    def test_title_rules(self) -> None:
        self.assertIs(classify_crm_dispatch("[pn] Flash sale"), CalendarEventType.PUSH_NOTIFICATION)
        self.assertIs(classify_crm_dispatch("Newsletter"), CalendarEventType.UNDEFINED)
        self.assertIs(classify_campaign("Anything"), CalendarEventType.CAMPAIGN)
        self.assertIs(classify_dev_milestone("Q1 CODE FREEZE"), CalendarEventType.CODE_FREEZE)
        self.assertIs(classify_dev_milestone("Sprint review"), CalendarEventType.UNDEFINED)

    def test_zero_token_expiry_means_never(self) -> None:
        self.assertIsNone(parse_token_expiry("0001-01-01T00:00:00Z"))
        self.assertIsNone(parse_token_expiry(None))
        self.assertEqual(
            parse_token_expiry("2021-03-01T10:00:00.123456789+08:00"),
            datetime(2021, 3, 1, 10, 0, 0, 123456, tzinfo=timezone(timedelta(hours=8))),
        )

    def test_short_fraction_is_padded(self) -> None:
        self.assertEqual(
            parse_token_expiry("2021-03-01T10:00:00.12345+08:00"),
            datetime(2021, 3, 1, 10, 0, 0, 123450, tzinfo=timezone(timedelta(hours=8))),
        )
        self.assertEqual(
            parse_token_expiry("2021-03-01T10:00:00.5Z"),
            datetime(2021, 3, 1, 10, 0, 0, 500000, tzinfo=timezone.utc),
        )


class GoogleCalendarSourceTests(unittest.IsolatedAsyncioTestCase):
    async def test_fetches_working_hours_and_classifies(self) -> None:
        url = "https://www.googleapis.com/calendar/v3/calendars/x/events"
        first = _response(
            url,
            {
                "items": [_google_event("[PN] Payday", "2021-03-01T10:00:00+08:00", "2021-03-01T10:30:00+08:00")],
                "nextPageToken": "page-2",
            },
        )
        second = _response(
            url,
            {"items": [_google_event("Weekly digest", "2021-03-01T02:00:00Z", "2021-03-01T03:00:00Z")]},
        )
        source = _calendar("push_notifications")

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_client.return_value.__aenter__.return_value
            instance.get = AsyncMock(side_effect=[first, second])
            events = await source.fetch_events_by_day(datetime(2021, 3, 1, 8, 30, tzinfo=SGT))

        self.assertEqual([event.type for event in events], [
            CalendarEventType.PUSH_NOTIFICATION,
            CalendarEventType.UNDEFINED,
        ])
        self.assertEqual(events[1].starts_at, datetime(2021, 3, 1, 10, 0, tzinfo=SGT))

        first_call = instance.get.call_args_list[0].kwargs
        self.assertEqual(first_call["params"]["timeMin"], "2021-03-01T09:00:00+08:00")
        self.assertEqual(first_call["params"]["timeMax"], "2021-03-01T19:00:00+08:00")
        self.assertEqual(first_call["headers"]["Authorization"], "Bearer access-token")
        self.assertEqual(instance.get.call_args_list[1].kwargs["params"]["pageToken"], "page-2")

    async def test_missing_times_are_an_error(self) -> None:
        url = "https://www.googleapis.com/calendar/v3/calendars/x/events"
        payload = {"items": [_google_event("All hands", None, None)]}
        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_client.return_value.__aenter__.return_value
            instance.get = AsyncMock(return_value=_response(url, payload))
            with self.assertRaises(ValueError):
                await _calendar("campaigns").fetch_events_by_day(datetime(2021, 3, 1, tzinfo=SGT))

    async def test_expired_token_is_refreshed(self) -> None:
        auth = GoogleAuth(
            "client",
            "secret",
            "stale-token",
            refresh_token="refresh",
            expiry=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        token_response = httpx.Response(
            200,
            json={"access_token": "fresh-token", "expires_in": 3600},
            request=httpx.Request("POST", "https://oauth2.googleapis.com/token"),
        )
        events_response = _response("https://www.googleapis.com/calendar/v3/calendars/x/events", {"items": []})

        with patch("httpx.AsyncClient") as mock_client:
            instance = mock_client.return_value.__aenter__.return_value
            instance.post = AsyncMock(return_value=token_response)
            instance.get = AsyncMock(return_value=events_response)
            await _calendar("dev_milestones", auth).fetch_events_by_day(datetime(2021, 3, 1, tzinfo=SGT))

        self.assertEqual(instance.post.call_args.kwargs["data"]["grant_type"], "refresh_token")
        self.assertEqual(instance.get.call_args.kwargs["headers"]["Authorization"], "Bearer fresh-token")
        self.assertFalse(auth.expired())

    def test_unknown_kind_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            _calendar("holidays")
