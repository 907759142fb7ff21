from __future__ import annotations

import logging

from ..newspaper.base import Issue, Publisher
from .render import render_plain


class LogPublisher(Publisher):
    """Writes the issue to the log instead of delivering it. Used for dry runs."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    async def publish(self, issue: Issue) -> None:
        if not issue:
            self._logger.info("[dry-run] Issue has no pages")
            return
        self._logger.info("[dry-run] Issue with %s pages:\n%s", len(issue), render_plain(issue))
