from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Union
from zoneinfo import ZoneInfo


DEFAULT_AUTHOR_NAME = "J. Jonah Jameson"

Clock = Callable[[], datetime]


def zoned_clock(timezone_name: str) -> Clock:
    """Returns a clock reporting the current time in the given IANA zone."""
    zone = ZoneInfo(timezone_name)

    def now() -> datetime:
        return datetime.now(zone)

    return now


@dataclass
class Page:
    headline_emoji: str
    headline: str
    author: str
    blocks: list[dict[str, Any]] = field(default_factory=list)


Issue = list[Page]


@dataclass(frozen=True)
class Declined:
    """Returned by a writer that has nothing to contribute to today's issue."""

    reason: str = ""


WriteResult = Union[Page, Declined]


class Writer(ABC):
    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def write(self) -> WriteResult:
        """Write a page, or return Declined. Raises if the underlying data can't be fetched."""
        raise NotImplementedError


class Publisher(ABC):
    @abstractmethod
    async def publish(self, issue: Issue) -> None:
        """Deliver the issue. Raises PublishError on failure."""
        raise NotImplementedError


class WriterError(Exception):
    def __init__(self, writer: str, cause: BaseException) -> None:
        super().__init__(f"writer {writer} failed: {cause}")
        self.writer = writer


class PublishError(Exception):
    pass
