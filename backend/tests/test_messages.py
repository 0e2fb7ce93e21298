from datetime import date, time

from waveping.core.engine_config import EngineConfig
from waveping.services.messages import format_day, render_change_alert, render_digest, render_reminder
from waveping.services.types import EventSnapshot

CONFIG = EngineConfig()


def _event(**kw):
    values = dict(
        id="abc123def456",
        date=date(2025, 6, 15),
        start_time=time(10, 0),
        end_time=time(11, 0),
        name="Beginner Left",
        level="beginner",
        side="L",
        available_capacity=8,
    )
    values.update(kw)
    return EventSnapshot(**values)


def test_format_day():
    assert format_day(date(2025, 6, 14)) == "Saturday, June 14th"
    assert format_day(date(2025, 6, 1)) == "Sunday, June 1st"
    assert format_day(date(2025, 6, 12)) == "Thursday, June 12th"
    assert format_day(date(2025, 6, 22)) == "Sunday, June 22nd"


def test_reminder_body_and_buttons():
    text, buttons = render_reminder(_event(), "24h", CONFIG)
    assert "24 hours notice" in text
    assert "Sunday, June 15th" in text
    assert "10:00 - 11:00" in text
    assert "Beginner" in text
    assert "Left" in text
    assert "8 spots" in text
    assert "Filling fast" not in text
    assert buttons[0][0]["url"] == CONFIG.default_book_url
    assert [b["callback_data"] for b in buttons[1]] == ["going_abc123def456", "skip_abc123def456"]


def test_reminder_urgency_marker_for_low_capacity():
    text, _ = render_reminder(_event(available_capacity=2), "2h", CONFIG)
    assert "Filling fast - only 2 spots left!" in text
    text, _ = render_reminder(_event(available_capacity=0), "2h", CONFIG)
    assert "Filling fast" not in text


def test_reminder_unknown_capacity():
    text, _ = render_reminder(_event(available_capacity=None), "12h", CONFIG)
    assert "unknown" in text


def test_reminder_escapes_upstream_text_and_uses_event_url():
    event = _event(instructor="<Kai & Co>", book_url="https://example.com/book/1")
    text, buttons = render_reminder(event, "24h", CONFIG)
    assert "&lt;Kai &amp; Co&gt;" in text
    assert buttons[0][0]["url"] == "https://example.com/book/1"


def test_weather_section_only_when_present():
    weather = {"air_temp": 18.5, "water_temp": 16.0, "wind_speed": 12, "wind_direction": "SW", "conditions": "Sunny"}
    text, _ = render_reminder(_event(), "24h", CONFIG, weather)
    assert "Air: 18.5°C" in text
    assert "Wind: 12 mph SW" in text
    assert "Conditions" not in render_reminder(_event(), "24h", CONFIG, {})[0]


def test_change_alert_headings():
    assert "Spots just opened" in render_change_alert(_event(), "became_available", CONFIG)[0]
    assert "Filling fast!" in render_change_alert(_event(available_capacity=3), "filling_fast", CONFIG)[0]


def test_digest_groups_by_date():
    today = date(2025, 6, 14)
    events = [
        _event(id="a", date=today, start_time=time(9, 0), side=None),
        _event(id="b", date=today, start_time=time(14, 0), available_capacity=1),
        _event(id="c", date=date(2025, 6, 15), start_time=time(8, 0), side="R"),
    ]
    text, buttons = render_digest("evening", events, CONFIG, today)
    assert "3 matching sessions" in text
    assert text.index("<b>Today</b>") < text.index("<b>Tomorrow</b>")
    assert "<b>09:00</b> Beginner [Any] - 8 spots" in text
    assert "1 spot ⚠️" in text
    assert "[R]" in text
    assert buttons[0][0]["url"] == CONFIG.default_book_url


def test_long_digest_is_cut_to_one_message():
    config = EngineConfig(message_max_chars=300)
    today = date(2025, 6, 14)
    events = [_event(id=str(i), date=today, start_time=time(6 + i % 12, 0)) for i in range(30)]
    text, _ = render_digest("morning", events, config, today)
    assert len(text) <= 300
    assert "30 matching sessions" in text
    shown = text.count("Beginner [L]")
    assert 0 < shown < 30
    assert text.endswith(f"+ {30 - shown} more sessions")


def test_digest_that_fits_has_no_overflow_line():
    text, _ = render_digest("evening", [_event()], CONFIG, date(2025, 6, 14))
    assert "more session" not in text
