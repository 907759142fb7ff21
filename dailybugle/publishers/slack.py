from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any

import httpx

from ..newspaper.base import Issue, Publisher, PublishError
from .render import fallback_text, render_issue


POST_MESSAGE_ENDPOINT = "https://slack.com/api/chat.postMessage"


@dataclass
class SlackSettings:
    api_token: str
    channel_id: str
    timeout_seconds: int
    user_agent: str


class SlackChannelPublisher(Publisher):
    def __init__(self, settings: SlackSettings) -> None:
        self._settings = settings
        self._logger = logging.getLogger(__name__)

    async def publish(self, issue: Issue) -> None:
        payload = _build_payload(self._settings.channel_id, issue)
        headers = {
            "Authorization": f"Bearer {self._settings.api_token}",
            "User-Agent": self._settings.user_agent,
        }

        async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
            for attempt in range(3):
                response = await client.post(POST_MESSAGE_ENDPOINT, json=payload, headers=headers)
                if response.status_code == 429:
                    retry_after = _retry_after(response)
                    self._logger.warning("Slack rate limit hit, sleeping %.2fs", retry_after)
                    await asyncio.sleep(retry_after)
                    continue
                if not 200 <= response.status_code < 300:
                    raise PublishError(f"Slack chat.postMessage failed with status {response.status_code}")
                body = response.json()
                if not body.get("ok"):
                    raise PublishError(f"Slack chat.postMessage failed: {body.get('error', 'unknown error')}")
                self._logger.info("Published issue to Slack channel %s", self._settings.channel_id)
                return
        raise PublishError("Slack chat.postMessage kept hitting the rate limit")


def _build_payload(channel_id: str, issue: Issue) -> dict[str, Any]:
    return {
        "channel": channel_id,
        "as_user": True,
        "text": fallback_text(issue),
        "blocks": render_issue(issue),
    }


def _retry_after(response: httpx.Response) -> float:
    value = response.headers.get("Retry-After")
    if not value:
        return 1.0
    try:
        return float(value)
    except ValueError:
        return 1.0
