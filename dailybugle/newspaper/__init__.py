from .base import (
    Clock,
    Declined,
    Issue,
    Page,
    Publisher,
    PublishError,
    Writer,
    WriterError,
    zoned_clock,
)
from .codereview import CodeReviewMarketWriter, Ticket, TicketSource, rank_tickets
from .editor import edit_and_publish, edit_issue
from .forecast import (
    CalendarEvent,
    CalendarEventType,
    CalendarSource,
    Forecast,
    ReleaseForecastWriter,
    merge_overlapping_events,
)

__all__ = [
    "CalendarEvent",
    "CalendarEventType",
    "CalendarSource",
    "Clock",
    "CodeReviewMarketWriter",
    "Declined",
    "Forecast",
    "Issue",
    "Page",
    "Publisher",
    "PublishError",
    "ReleaseForecastWriter",
    "Ticket",
    "TicketSource",
    "Writer",
    "WriterError",
    "edit_and_publish",
    "edit_issue",
    "merge_overlapping_events",
    "rank_tickets",
    "zoned_clock",
]
