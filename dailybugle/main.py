from __future__ import annotations

# Plan:
# 1) Load config and wire the Jira + Google Calendar sources into writers.
# 2) Edit the issue (code review market, then release forecast).
# 3) Publish to every configured target, or to the log with --dry-run.

import argparse
import asyncio
import logging
from pathlib import Path

from .config import Config, load_config
from .newspaper import (
    CodeReviewMarketWriter,
    Publisher,
    PublishError,
    ReleaseForecastWriter,
    Writer,
    WriterError,
    edit_and_publish,
    zoned_clock,
)
from .publishers.factory import MultiPublisher, build_publishers
from .publishers.log import LogPublisher
from .sources.google_calendar import (
    GoogleAuth,
    GoogleCalendarSettings,
    GoogleCalendarSource,
    parse_token_expiry,
)
from .sources.jira import JiraSettings, JiraTicketSource


async def main() -> None:
    args = _parse_args()
    if args.init_config:
        _init_config(Path(args.config))
        return
    _configure_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        logger.error("Could not load configuration: %s", exc)
        raise SystemExit(1)

    publisher = _build_publisher(config, dry_run=args.dry_run)
    try:
        writers = _build_writers(config)
    except (KeyError, ValueError) as exc:
        logger.error("Could not set up writers: %s", exc)
        raise SystemExit(1)
    concurrent = config.settings.concurrent_writers and not args.sequential

    try:
        await edit_and_publish(publisher, writers, concurrent=concurrent)
    except WriterError as exc:
        logger.error("Could not edit the issue: %s", exc)
        raise SystemExit(1)
    except PublishError as exc:
        logger.error("Could not publish the issue: %s", exc)
        raise SystemExit(1)


def run() -> None:
    asyncio.run(main())


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Daily Bugle team newspaper")
    parser.add_argument("--config", default="./config.yaml")
    parser.add_argument("--dry-run", action="store_true", help="Log the issue instead of publishing it")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--sequential", action="store_true", help="Run writers one at a time")
    parser.add_argument("--init-config", action="store_true", help="Create a config.yaml template and exit")
    return parser.parse_args()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def _init_config(target: Path) -> None:
    if target.exists():
        raise SystemExit(f"Config already exists at {target}")
    root = Path(__file__).resolve().parents[1]
    template = root / "config.example.yaml"
    if not template.exists():
        raise SystemExit("config.example.yaml not found")
    target.write_text(template.read_text(encoding="utf-8"), encoding="utf-8")
    print(f"Wrote config template to {target}")


def _build_publisher(config: Config, dry_run: bool) -> Publisher:
    if dry_run:
        return LogPublisher()
    publishers = build_publishers(config)
    if not publishers:
        raise SystemExit(
            "At least one publish target is required unless --dry-run is set. "
            "Add a slack or webhook entry under publish in config.yaml."
        )
    if len(publishers) == 1:
        return publishers[0]
    return MultiPublisher(publishers)


def _build_writers(config: Config) -> list[Writer]:
    settings = config.settings
    clock = zoned_clock(settings.timezone)

    tickets = JiraTicketSource(
        JiraSettings(
            base_url=config.jira.base_url,
            username=config.jira.username,
            api_token=config.jira.api_token,
            jql=config.jira.jql,
            page_size=config.jira.page_size,
            timeout_seconds=settings.request_timeout_seconds,
            user_agent=settings.user_agent,
        )
    )

    google = config.google
    auth = GoogleAuth(
        client_id=google.client_id,
        client_secret=google.client_secret,
        access_token=google.token.access_token,
        refresh_token=google.token.refresh_token,
        expiry=parse_token_expiry(google.token.expiry),
    )
    calendars = [
        GoogleCalendarSource(
            GoogleCalendarSettings(
                calendar_id=calendar.id,
                kind=calendar.kind,
                working_hours_start=settings.working_hours_start,
                working_hours_end=settings.working_hours_end,
                timeout_seconds=settings.request_timeout_seconds,
                user_agent=settings.user_agent,
            ),
            auth,
        )
        for calendar in google.calendars
    ]

    return [
        CodeReviewMarketWriter(tickets, clock, author=settings.author_name),
        ReleaseForecastWriter(
            calendars,
            clock,
            timezone_label=settings.timezone_label,
            author=settings.author_name,
        ),
    ]


if __name__ == "__main__":
    run()
