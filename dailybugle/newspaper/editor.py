from __future__ import annotations

import asyncio
import logging
from typing import Sequence, Union

from .base import Declined, Issue, Page, Publisher, PublishError, WriteResult, Writer, WriterError


Outcome = Union[Page, Declined, BaseException]


async def edit_issue(writers: Sequence[Writer], concurrent: bool = True) -> Issue:
    """
    Collects one page per writer, in writer order. Declined writers are
    skipped; the first failing writer (in writer order, not completion order)
    aborts the issue with WriterError.
    """
    if concurrent:
        outcomes: list[Outcome] = await asyncio.gather(
            *(writer.write() for writer in writers), return_exceptions=True
        )
        return _assemble(writers, outcomes)

    issue: Issue = []
    for writer in writers:
        try:
            result = await writer.write()
        except Exception as exc:
            raise _writer_failed(writer, exc) from exc
        _collect(issue, writer, result)
    return issue


async def edit_and_publish(
    publisher: Publisher,
    writers: Sequence[Writer],
    concurrent: bool = True,
) -> Issue:
    logger = logging.getLogger(__name__)
    issue = await edit_issue(writers, concurrent=concurrent)
    logger.info("Edited issue with %s pages from %s writers", len(issue), len(writers))
    try:
        await publisher.publish(issue)
    except PublishError:
        raise
    except Exception as exc:
        raise PublishError(f"could not publish issue: {exc}") from exc
    return issue


def _assemble(writers: Sequence[Writer], outcomes: Sequence[Outcome]) -> Issue:
    issue: Issue = []
    for writer, outcome in zip(writers, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            raise _writer_failed(writer, outcome) from outcome
        _collect(issue, writer, outcome)
    return issue


def _collect(issue: Issue, writer: Writer, result: WriteResult) -> None:
    if isinstance(result, Declined):
        logging.getLogger(__name__).info("Writer %s declined: %s", writer.name, result.reason or "no inspiration")
        return
    if isinstance(result, Page):
        issue.append(result)
        return
    error = TypeError(f"writer {writer.name} returned {type(result).__name__}, expected Page or Declined")
    raise _writer_failed(writer, error) from error


def _writer_failed(writer: Writer, exc: Exception) -> WriterError:
    logging.getLogger(__name__).error("Writer %s failed: %s", writer.name, exc)
    return WriterError(writer.name, exc)
