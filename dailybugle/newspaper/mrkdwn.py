from __future__ import annotations

from datetime import datetime
from typing import Any


def bold(text: str) -> str:
    return f"*{text}*"


def italic(text: str) -> str:
    return f"_{text}_"


def link(text: str, url: str) -> str:
    return f"<{url}|{text}>"


def emoji(name: str) -> str:
    return f":{name}:"


def plural(count: int, singular: str, plural_form: str) -> str:
    word = singular if count == 1 else plural_form
    return f"{count} {word}"


def kitchen_time(value: datetime) -> str:
    # 12-hour clock without a leading zero, e.g. 3:04PM
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d}{suffix}"


def section_block(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}
