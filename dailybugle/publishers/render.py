from __future__ import annotations

from typing import Any

from ..newspaper.base import Issue, Page
from ..newspaper.mrkdwn import emoji, italic


def _spacer() -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": " "}}


def render_page(page: Page) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"{emoji(page.headline_emoji)} {page.headline}"},
        }
    ]
    blocks.extend(page.blocks)
    blocks.append(
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": italic(f"By {page.author}")}],
        }
    )
    blocks.append({"type": "divider"})
    return blocks


def render_issue(issue: Issue) -> list[dict[str, Any]]:
    """Turns an issue into Slack Block Kit blocks, padded with a blank section on both ends."""
    blocks = [_spacer()]
    for page in issue:
        blocks.extend(render_page(page))
    blocks.append(_spacer())
    return blocks


def fallback_text(issue: Issue) -> str:
    if not issue:
        return "Daily Bugle"
    return "Daily Bugle: " + ", ".join(page.headline for page in issue)


def render_plain(issue: Issue) -> str:
    sections: list[str] = []
    for page in issue:
        lines = [f"{emoji(page.headline_emoji)} {page.headline}"]
        for block in page.blocks:
            text = (block.get("text") or {}).get("text")
            if text:
                lines.append(text)
        lines.append(italic(f"By {page.author}"))
        sections.append("\n".join(lines))
    return "\n\n".join(sections)
