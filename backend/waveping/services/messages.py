"""
Render Telegram (HTML parse mode) texts and inline keyboards for reminders, change alerts and digests.

Everything interpolated from upstream data goes through html.escape.
"""
from __future__ import annotations

import html
from datetime import date
from typing import Any

from waveping.core.constants import (
    BECAME_AVAILABLE,
    DIGEST_MORNING,
    FILLING_FAST,
    LEAD_TIME_LABELS,
    SIDE_LABELS,
)
from waveping.core.engine_config import EngineConfig
from waveping.services.telegram import Buttons
from waveping.services.types import EventSnapshot


def _ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        return f"{n}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_day(d: date) -> str:
    """Saturday, June 14th"""
    return f"{d:%A}, {d:%B} {_ordinal(d.day)}"


def format_time_range(event: EventSnapshot) -> str:
    start = event.start_time.strftime("%H:%M")
    if event.end_time:
        return f"{start} - {event.end_time.strftime('%H:%M')}"
    return start


def format_level(level: str) -> str:
    return level.replace("_", " ").title()


def format_spots(capacity: int | None) -> str:
    if capacity is None:
        return "unknown"
    return f"{capacity} spot{'' if capacity == 1 else 's'}"


def is_low_capacity(capacity: int | None, config: EngineConfig) -> bool:
    return capacity is not None and 0 < capacity <= config.filling_fast_threshold


def _side_chip(side: str | None) -> str:
    return f"[{side}]" if side else "[Any]"


def _weather_lines(weather: dict[str, Any] | None) -> list[str]:
    if not weather:
        return []
    lines = ["", "🌡️ <b>Conditions:</b>"]
    temps = []
    if weather.get("air_temp") is not None:
        temps.append(f"Air: {weather['air_temp']}°C")
    if weather.get("water_temp") is not None:
        temps.append(f"Water: {weather['water_temp']}°C")
    if temps:
        lines.append("• " + " | ".join(temps))
    if weather.get("wind_speed") is not None:
        direction = html.escape(weather.get("wind_direction") or "")
        lines.append(f"• Wind: {weather['wind_speed']} mph {direction}".rstrip())
    if weather.get("conditions"):
        lines.append(f"• {html.escape(weather['conditions'])}")
    return lines if len(lines) > 2 else []


def event_buttons(event: EventSnapshot, config: EngineConfig) -> Buttons:
    return [
        [{"text": "📍 Book Now", "url": event.book_url or config.default_book_url}],
        [
            {"text": "✅ I'm going", "callback_data": f"going_{event.id}"},
            {"text": "❌ Skip", "callback_data": f"skip_{event.id}"},
        ],
    ]


def _event_body(event: EventSnapshot, config: EngineConfig, weather: dict[str, Any] | None) -> list[str]:
    lines = [
        f"📅 {format_day(event.date)}",
        f"🕐 {format_time_range(event)}",
        f"📊 <b>Level:</b> {html.escape(format_level(event.level))}",
    ]
    if event.side:
        lines.append(f"🏄 <b>Side:</b> {SIDE_LABELS.get(event.side, html.escape(event.side))}")
    lines.append(f"👥 <b>Spaces available:</b> {format_spots(event.available_capacity)}")
    lines.extend(_weather_lines(weather))
    if is_low_capacity(event.available_capacity, config):
        lines.append("")
        lines.append(f"⚠️ <b>Filling fast - only {format_spots(event.available_capacity)} left!</b>")
    if event.instructor:
        lines.append(f"👨‍🏫 <b>Instructor:</b> {html.escape(event.instructor)}")
    return lines


def render_reminder(
    event: EventSnapshot,
    lead_time: str,
    config: EngineConfig,
    weather: dict[str, Any] | None = None,
) -> tuple[str, Buttons]:
    label = LEAD_TIME_LABELS.get(lead_time, lead_time)
    lines = [f"🌊 <b>Wave Alert - {html.escape(label)} notice</b>", ""]
    lines.extend(_event_body(event, config, weather))
    return "\n".join(lines), event_buttons(event, config)


_CHANGE_HEADINGS = {
    BECAME_AVAILABLE: "🎉 <b>Spots just opened!</b>",
    FILLING_FAST: "⏳ <b>Filling fast!</b>",
}


def render_change_alert(
    event: EventSnapshot,
    alert_tag: str,
    config: EngineConfig,
    weather: dict[str, Any] | None = None,
) -> tuple[str, Buttons]:
    heading = _CHANGE_HEADINGS.get(alert_tag, "🌊 <b>Session update</b>")
    lines = [heading, f"<b>{html.escape(event.name)}</b>", ""]
    lines.extend(_event_body(event, config, weather))
    return "\n".join(lines), event_buttons(event, config)


def render_digest(
    digest_type: str,
    events: list[EventSnapshot],
    config: EngineConfig,
    today: date,
) -> tuple[str, Buttons]:
    """
    One summary listing matching sessions, grouped by date. Sessions that would push the text
    past config.message_max_chars are left off and counted in a closing "+ N more" line.
    """
    if digest_type == DIGEST_MORNING:
        lines = ["🌅 <b>Good Morning, Wave Rider!</b> ☀️", ""]
    else:
        lines = ["🌇 <b>Evening Wave Report</b> 🌊", ""]
    count = len(events)
    lines.append(f"🌊 <b>{count} matching session{'' if count == 1 else 's'}</b>")

    # Room for the "+ N more" line in case anything has to be left off
    budget = config.message_max_chars - len(_more_line(count)) - 1
    size = len("\n".join(lines))
    current_day: date | None = None
    shown = 0
    for event in events:
        entry = []
        if event.date != current_day:
            entry = ["", f"<b>{_day_label(event.date, today)}</b>"]
        low = " ⚠️" if is_low_capacity(event.available_capacity, config) else ""
        entry.append(
            f"<b>{event.start_time.strftime('%H:%M')}</b> {html.escape(format_level(event.level))} "
            f"{_side_chip(event.side)} - {format_spots(event.available_capacity)}{low}"
        )
        grown = size + sum(len(line) + 1 for line in entry)
        if grown > budget and not (shown == count - 1 and grown <= config.message_max_chars):
            break
        lines.extend(entry)
        size = grown
        current_day = event.date
        shown += 1
    if shown < count:
        lines.append(_more_line(count - shown))
    buttons: Buttons = [[{"text": "🏄 Book at The Wave", "url": config.default_book_url}]]
    return "\n".join(lines), buttons


def _day_label(d: date, today: date) -> str:
    if d == today:
        return "Today"
    if (d - today).days == 1:
        return "Tomorrow"
    return format_day(d)


def _more_line(n: int) -> str:
    return f"+ {n} more session{'' if n == 1 else 's'}"
