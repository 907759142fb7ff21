from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
import logging

from .base import DEFAULT_AUTHOR_NAME, Clock, Page, Writer
from .mrkdwn import bold, link, plural, section_block


NO_DEMAND_TEXT = "Looks like there is no demand for code reviews today."
INTRO_TEXT = (
    "Here is a list of hot tickets which index of waiting for code review is "
    "trending up. Hurry up before someone else reviews them ahead of you!"
)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Ticket:
    id: str
    url: str
    summary: str
    status: str
    status_since: datetime | None = None


@dataclass(frozen=True)
class RankedTicket:
    ticket: Ticket
    staleness_days: float | None

    @property
    def staleness_known(self) -> bool:
        return self.staleness_days is not None


class TicketSource(ABC):
    @abstractmethod
    async def fetch_tickets_awaiting_review(self) -> list[Ticket]:
        """Fetch every ticket currently waiting for code review."""
        raise NotImplementedError


def staleness_days(ticket: Ticket, now: datetime) -> float | None:
    if ticket.status_since is None:
        return None
    return (now - ticket.status_since).total_seconds() / SECONDS_PER_DAY


def rank_tickets(tickets: list[Ticket], now: datetime) -> list[RankedTicket]:
    """
    Orders tickets by descending staleness. Ties keep fetch order, and tickets
    with unknown staleness go last.
    """
    ranked = [RankedTicket(ticket=ticket, staleness_days=staleness_days(ticket, now)) for ticket in tickets]
    known = [entry for entry in ranked if entry.staleness_known]
    unknown = [entry for entry in ranked if not entry.staleness_known]
    known.sort(key=lambda entry: entry.staleness_days, reverse=True)
    return known + unknown


class CodeReviewMarketWriter(Writer):
    def __init__(
        self,
        source: TicketSource,
        clock: Clock,
        author: str = DEFAULT_AUTHOR_NAME,
    ) -> None:
        self._source = source
        self._clock = clock
        self._author = author
        self._logger = logging.getLogger(__name__)

    async def write(self) -> Page:
        tickets = await self._source.fetch_tickets_awaiting_review()
        ranked = rank_tickets(tickets, self._clock())
        self._logger.debug("Ranked %s tickets awaiting review", len(ranked))

        page = Page(
            headline_emoji="chart_with_upwards_trend",
            headline="Code Review Market",
            author=self._author,
        )
        if not ranked:
            page.blocks.append(section_block(NO_DEMAND_TEXT))
            return page

        lines = [INTRO_TEXT, ""]
        for entry in ranked:
            if not entry.staleness_known:
                self._logger.warning("Staleness unknown for %s", entry.ticket.id)
            lines.append(bold(f"   {link(entry.ticket.id, entry.ticket.url)}   +{_format_age(entry)}"))

        page.blocks.append(section_block("\n".join(lines)))
        return page


def _format_age(entry: RankedTicket) -> str:
    if entry.staleness_days is None:
        return "? days"
    # int() truncates toward zero, so 1.9 days reads as "1 day"
    return plural(int(entry.staleness_days), "day", "days")
