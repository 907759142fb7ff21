from __future__ import annotations

from dataclasses import dataclass
import json
import os
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .sources.google_calendar import parse_token_expiry


DEFAULT_JQL = 'project = "Mobile Backend" AND status = "Awaiting Review"'
CALENDAR_KINDS = {"push_notifications", "campaigns", "dev_milestones"}
PUBLISH_TYPES = {"slack", "webhook"}


@dataclass
class JiraConfig:
    base_url: str
    username: str
    api_token: str
    jql: str
    page_size: int


@dataclass
class GoogleToken:
    access_token: str
    refresh_token: str | None
    expiry: str | None


@dataclass
class CalendarConfig:
    id: str
    kind: str


@dataclass
class GoogleConfig:
    client_id: str
    client_secret: str
    token: GoogleToken
    calendars: list[CalendarConfig]


@dataclass
class PublishTarget:
    type: str
    settings: dict[str, Any]


@dataclass
class Settings:
    timezone: str
    timezone_label: str
    working_hours_start: int
    working_hours_end: int
    author_name: str
    request_timeout_seconds: int
    user_agent: str
    concurrent_writers: bool


@dataclass
class Config:
    jira: JiraConfig
    google: GoogleConfig
    publish: list[PublishTarget]
    settings: Settings


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _expand_env(val) for key, val in value.items()}
    return value


def _require_dict(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a mapping")
    return value


def _require_str(value: Any, name: str) -> str:
    if value is None or value == "":
        raise ValueError(f"{name} is required")
    text = str(value)
    if "${" in text:
        raise ValueError(f"{name} references an unset environment variable")
    return text


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    data = _expand_env(raw)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping")

    settings_raw = _require_dict(data.get("settings"), "settings")
    start = int(settings_raw.get("working_hours_start", 9))
    end = int(settings_raw.get("working_hours_end", 19))
    if not 0 <= start < end <= 24:
        raise ValueError("settings.working_hours_start must be before settings.working_hours_end")

    settings = Settings(
        timezone=_require_timezone(settings_raw.get("timezone", "Asia/Singapore")),
        timezone_label=str(settings_raw.get("timezone_label", "SGT")),
        working_hours_start=start,
        working_hours_end=end,
        author_name=str(settings_raw.get("author_name", "J. Jonah Jameson")),
        request_timeout_seconds=int(settings_raw.get("request_timeout_seconds", 20)),
        user_agent=str(settings_raw.get("user_agent", "dailybugle/0.1")),
        concurrent_writers=bool(settings_raw.get("concurrent_writers", True)),
    )

    return Config(
        jira=_load_jira(_require_dict(data.get("jira"), "jira")),
        google=_load_google(_require_dict(data.get("google"), "google")),
        publish=_load_publish(data.get("publish")),
        settings=settings,
    )


def _load_jira(raw: dict[str, Any]) -> JiraConfig:
    page_size = int(raw.get("page_size", 50))
    if page_size < 1:
        raise ValueError("jira.page_size must be positive")
    return JiraConfig(
        base_url=_require_str(raw.get("base_url"), "jira.base_url").rstrip("/"),
        username=_require_str(raw.get("username"), "jira.username"),
        api_token=_require_str(raw.get("api_token"), "jira.api_token"),
        jql=str(raw.get("jql") or DEFAULT_JQL),
        page_size=page_size,
    )


def _load_google(raw: dict[str, Any]) -> GoogleConfig:
    calendars_raw = raw.get("calendars", [])
    if not isinstance(calendars_raw, list):
        raise ValueError("google.calendars must be a list")
    calendars: list[CalendarConfig] = []
    for entry in calendars_raw:
        if not isinstance(entry, dict):
            raise ValueError("google.calendars entries must be mappings")
        kind = str(entry.get("kind", "")).lower()
        if kind not in CALENDAR_KINDS:
            raise ValueError(f"google.calendars kind must be one of {sorted(CALENDAR_KINDS)}")
        calendars.append(CalendarConfig(id=_require_str(entry.get("id"), "google.calendars.id"), kind=kind))

    return GoogleConfig(
        client_id=_require_str(raw.get("client_id"), "google.client_id"),
        client_secret=_require_str(raw.get("client_secret"), "google.client_secret"),
        token=_parse_token(raw.get("token")),
        calendars=calendars,
    )


def _parse_token(value: Any) -> GoogleToken:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValueError("google.token must be a JSON document or a mapping")
    token = _require_dict(value, "google.token")
    refresh_token = token.get("refresh_token")
    expiry = token.get("expiry")
    return GoogleToken(
        access_token=_require_str(token.get("access_token"), "google.token.access_token"),
        refresh_token=str(refresh_token) if refresh_token else None,
        expiry=_require_expiry(expiry),
    )


def _load_publish(value: Any) -> list[PublishTarget]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("publish must be a list")
    targets: list[PublishTarget] = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ValueError("publish entries must be mappings")
        target_type = str(entry.get("type", "")).lower()
        if target_type not in PUBLISH_TYPES:
            raise ValueError(f"publish entries must have type in {sorted(PUBLISH_TYPES)}")
        settings = {k: v for k, v in entry.items() if k != "type"}
        targets.append(PublishTarget(type=target_type, settings=settings))
    return targets


def _require_timezone(value: Any) -> str:
    name = str(value)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"settings.timezone {name!r} is not a known time zone")
    return name


def _require_expiry(value: Any) -> str | None:
    if not value:
        return None
    text = str(value)
    try:
        parse_token_expiry(text)
    except ValueError:
        raise ValueError(f"google.token.expiry {text!r} is not an RFC 3339 timestamp")
    return text
