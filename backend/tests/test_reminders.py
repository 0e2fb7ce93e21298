from datetime import date, timedelta

from waveping.models.send_record import SendRecord
from waveping.services.reminders import collect_reminder_candidates, run_reminders

from conftest import NOW, FakeChannel

TOMORROW = date(2025, 6, 15)


def test_24h_reminder_sent_once(db, make_subscriber, make_event, channel, config, clock):
    sub = make_subscriber(levels=["beginner"], lead_times=["24h"])
    event = make_event(day=TOMORROW, start="10:00")

    first = run_reminders(db, channel, config, clock)
    assert first.sent == 1
    assert channel.chat_ids == [sub.telegram_chat_id]
    row = db.query(SendRecord).one()
    assert (row.subscriber_id, row.event_id, row.lead_time) == (sub.id, event.id, "24h")

    second = run_reminders(db, channel, config, clock)
    assert second.attempted == 0
    assert len(channel.sent) == 1
    assert db.query(SendRecord).count() == 1


def test_overlapping_runs_within_window_send_once(db, make_subscriber, make_event, channel, config, clock):
    make_subscriber(lead_times=["24h"])
    make_event(day=TOMORROW, start="10:30")
    run_reminders(db, channel, config, clock, NOW)
    run_reminders(db, channel, config, clock, NOW + timedelta(minutes=30))
    assert len(channel.sent) == 1


def test_window_edges(db, make_subscriber, make_event, channel, config, clock):
    make_subscriber(lead_times=["24h"])
    make_event(day=TOMORROW, start="10:45", name="Edge")
    make_event(day=TOMORROW, start="11:00", name="Too late")
    make_event(day=TOMORROW, start="09:15", name="Early edge")
    candidates = collect_reminder_candidates(db, config, clock)
    assert sorted(c.event.name for c in candidates) == ["Early edge", "Edge"]


def test_only_enabled_lead_times(db, make_subscriber, make_event, channel, config, clock):
    make_subscriber(lead_times=["2h"])
    make_subscriber(lead_times=[])
    make_event(day=TOMORROW, start="10:00")
    assert collect_reminder_candidates(db, config, clock) == []


def test_two_hour_reminder_today(db, make_subscriber, make_event, channel, config, clock):
    make_subscriber(lead_times=["2h", "24h"])
    make_event(day=NOW.date(), start="12:00")
    summary = run_reminders(db, channel, config, clock)
    assert summary.sent == 1
    assert db.query(SendRecord).one().lead_time == "2h"


def test_inactive_and_non_matching_events_skipped(db, make_subscriber, make_event, channel, config, clock):
    make_subscriber(lead_times=["24h"], min_spots=2)
    make_event(day=TOMORROW, start="10:00", name="Gone", is_active=False)
    make_event(day=TOMORROW, start="10:00", name="Expert Session", level="expert")
    make_event(day=TOMORROW, start="10:00", name="Full", spots_available=1)
    make_event(day=TOMORROW, start="10:00", name="Unknown", spots_available=None)
    candidates = collect_reminder_candidates(db, config, clock)
    assert [c.event.name for c in candidates] == ["Unknown"]


def test_failed_send_retried_next_run(db, make_subscriber, make_event, config, clock):
    sub = make_subscriber(lead_times=["24h"])
    make_event(day=TOMORROW, start="10:00")
    failing = FakeChannel(fail_chats={sub.telegram_chat_id})
    assert run_reminders(db, failing, config, clock).failed == 1
    assert db.query(SendRecord).count() == 0
    healthy = FakeChannel()
    assert run_reminders(db, healthy, config, clock, NOW + timedelta(minutes=30)).sent == 1
