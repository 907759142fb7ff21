from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import Config
from ..newspaper.base import Issue, Publisher, PublishError
from .slack import SlackChannelPublisher, SlackSettings
from .webhook import WebhookPublisher, WebhookSettings


class MultiPublisher(Publisher):
    """
    Delivers the issue to every target concurrently. Delivery is best-effort
    per target: a failing target does not stop the others, and every failure
    is reported in a single PublishError.
    """

    def __init__(self, publishers: list[Publisher]) -> None:
        self._publishers = list(publishers)
        self._logger = logging.getLogger(__name__)

    async def publish(self, issue: Issue) -> None:
        results = await asyncio.gather(
            *(publisher.publish(issue) for publisher in self._publishers), return_exceptions=True
        )
        failures: list[str] = []
        for publisher, result in zip(self._publishers, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._logger.error("Publisher %s failed: %s", type(publisher).__name__, result)
                failures.append(f"{type(publisher).__name__}: {result}")
        if failures:
            delivered = len(self._publishers) - len(failures)
            raise PublishError(
                f"{len(failures)} of {len(self._publishers)} targets failed "
                f"({delivered} delivered): " + "; ".join(failures)
            )


def build_publishers(config: Config) -> list[Publisher]:
    logger = logging.getLogger(__name__)
    publishers: list[Publisher] = []
    for target in config.publish:
        publisher = _build_target(target.type, target.settings, config)
        if publisher is None:
            logger.warning("Skipping %s publish target with incomplete settings", target.type)
            continue
        publishers.append(publisher)
    return publishers


def _build_target(target_type: str, settings: dict[str, Any], config: Config) -> Publisher | None:
    if target_type == "slack":
        token = _normalize_value(settings.get("api_token"))
        channel = _normalize_value(settings.get("channel_id"))
        if not token or not channel:
            return None
        return SlackChannelPublisher(
            SlackSettings(
                api_token=token,
                channel_id=channel,
                timeout_seconds=config.settings.request_timeout_seconds,
                user_agent=config.settings.user_agent,
            )
        )
    if target_type == "webhook":
        url = _normalize_url(settings.get("url"))
        if not url:
            return None
        headers = settings.get("headers")
        if headers is None:
            headers = {}
        return WebhookPublisher(
            WebhookSettings(
                url=url,
                headers={str(k): str(v) for k, v in headers.items()},
                timeout_seconds=config.settings.request_timeout_seconds,
                user_agent=config.settings.user_agent,
            )
        )
    return None


def _normalize_value(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None
    if "${" in value:
        return None
    return value


def _normalize_url(value: Any) -> str | None:
    value = _normalize_value(value)
    if value is None:
        return None
    if not (value.startswith("http://") or value.startswith("https://")):
        return None
    return value
