from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any

import httpx

from ..newspaper.codereview import Ticket, TicketSource


SEARCH_PATH = "/rest/api/2/search"


@dataclass
class JiraSettings:
    base_url: str
    username: str
    api_token: str
    jql: str
    page_size: int
    timeout_seconds: int
    user_agent: str


class JiraTicketSource(TicketSource):
    def __init__(self, settings: JiraSettings) -> None:
        self._settings = settings
        self._logger = logging.getLogger(__name__)

    async def fetch_tickets_awaiting_review(self) -> list[Ticket]:
        tickets: list[Ticket] = []
        headers = {"Accept": "application/json", "User-Agent": self._settings.user_agent}
        auth = httpx.BasicAuth(self._settings.username, self._settings.api_token)
        start_at = 0

        async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
            while True:
                params: dict[str, Any] = {
                    "jql": self._settings.jql,
                    "startAt": start_at,
                    "maxResults": self._settings.page_size,
                    "expand": "changelog",
                    "fields": "summary,status",
                }
                response = await client.get(
                    self._settings.base_url + SEARCH_PATH, params=params, headers=headers, auth=auth
                )
                response.raise_for_status()
                payload = response.json()

                issues = payload.get("issues") or []
                tickets.extend(self._parse_issue(issue) for issue in issues)

                start_at += len(issues)
                total = int(payload.get("total", 0))
                if not issues or start_at >= total:
                    break

        self._logger.debug("Fetched %s tickets awaiting review", len(tickets))
        return tickets

    def _parse_issue(self, issue: dict[str, Any]) -> Ticket:
        key = issue["key"]
        fields = issue.get("fields") or {}
        status = (fields.get("status") or {}).get("name") or ""
        return Ticket(
            id=key,
            url=f"{self._settings.base_url}/browse/{key}",
            summary=fields.get("summary") or "",
            status=status,
            status_since=self._status_since(key, issue.get("changelog") or {}, status),
        )

    def _status_since(self, key: str, changelog: dict[str, Any], status: str) -> datetime | None:
        history = _transition_to_status(changelog, status)
        if history is None:
            self._logger.debug("No transition into %r found for %s", status, key)
            return None
        try:
            return _parse_datetime(history.get("created"))
        except ValueError:
            self._logger.warning("Unparseable changelog timestamp for %s: %r", key, history.get("created"))
            return None


def _transition_to_status(changelog: dict[str, Any], status: str) -> dict[str, Any] | None:
    for history in changelog.get("histories") or []:
        for item in history.get("items") or []:
            if item.get("field") == "status" and item.get("toString") == status:
                return history
    return None


def _parse_datetime(value: str | None) -> datetime:
    if not value:
        raise ValueError("missing timestamp")
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%f%z")
    except ValueError:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed
