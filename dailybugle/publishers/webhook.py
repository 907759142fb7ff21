from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

import httpx

from ..newspaper.base import Issue, Publisher, PublishError


@dataclass
class WebhookSettings:
    url: str
    headers: dict[str, str]
    timeout_seconds: int
    user_agent: str


class WebhookPublisher(Publisher):
    def __init__(self, settings: WebhookSettings) -> None:
        self._settings = settings
        self._logger = logging.getLogger(__name__)

    async def publish(self, issue: Issue) -> None:
        payload = _build_payload(issue)
        headers = {"User-Agent": self._settings.user_agent}
        headers.update(self._settings.headers)

        async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
            response = await client.post(self._settings.url, json=payload, headers=headers)
            if not 200 <= response.status_code < 300:
                self._logger.error("Webhook failed with status %s", response.status_code)
                raise PublishError(f"Webhook failed with status {response.status_code}")


def _build_payload(issue: Issue) -> dict[str, Any]:
    return {
        "pages": [
            {
                "headline": page.headline,
                "headline_emoji": page.headline_emoji,
                "author": page.author,
                "blocks": page.blocks,
            }
            for page in issue
        ]
    }
