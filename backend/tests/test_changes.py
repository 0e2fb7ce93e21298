from datetime import date, timedelta

import pytest

from waveping.core.engine_config import EngineConfig
from waveping.models.availability_event import AvailabilityEvent
from waveping.models.change_record import ChangeRecord
from waveping.models.send_record import SendRecord
from waveping.services import changes
from waveping.services.changes import (
    Acquisition,
    apply_acquisition,
    claim_transition,
    classify_capacity,
    notify_changes,
    promotion_for,
)
from waveping.services.types import parse_event

from conftest import NOW, raw_event

START = date(2025, 6, 15)
END = date(2025, 6, 21)


def _apply(db, config, *events, start=START, end=END):
    return apply_acquisition(db, Acquisition(start, end, list(events)), config)


@pytest.mark.parametrize(
    "old,new,kind",
    [
        (5, 5, None),
        (None, None, None),
        (0, 4, "capacity_increased"),
        (None, 4, "capacity_increased"),
        (0, None, "capacity_decreased"),
        (6, 2, "capacity_decreased"),
        (None, 0, "capacity_decreased"),
    ],
)
def test_classify_capacity(old, new, kind):
    assert classify_capacity(old, new) == kind


@pytest.mark.parametrize(
    "old,new,tag",
    [
        (0, 4, "became_available"),
        (0, 1, "became_available"),
        (4, 3, "filling_fast"),
        (10, 0, "filling_fast"),
        (3, 2, None),
        (5, 4, None),
        (None, 4, None),
        (2, None, None),
    ],
)
def test_promotion_for(old, new, tag):
    assert promotion_for(old, new, EngineConfig()) == tag


def test_thresholds_are_configurable():
    config = EngineConfig(filling_fast_threshold=5)
    assert promotion_for(8, 5, config) == "filling_fast"


def test_first_acquisition_records_new_events(db, config):
    result = _apply(db, config, raw_event(start="08:00", spots_available=3), raw_event(start="12:00", spots_available=None))
    assert result.as_dict()["new"] == 2
    assert result.promotions == []
    rows = {r.event_id: r for r in db.query(ChangeRecord).all()}
    for event in db.query(AvailabilityEvent).all():
        assert rows[event.id].change_type == "new"
        assert rows[event.id].new_spots == event.spots_available


def test_zero_to_four_records_increase_and_alerts_eligible_subscribers(db, config, clock, channel, make_subscriber):
    no_lead_times = make_subscriber(levels=["beginner"], lead_times=[])
    make_subscriber(levels=["expert"], lead_times=["24h"])
    _apply(db, config, raw_event(spots_available=0))

    result = _apply(db, config, raw_event(spots_available=4))
    increases = db.query(ChangeRecord).filter(ChangeRecord.change_type == "capacity_increased").all()
    assert len(increases) == 1
    assert (increases[0].old_spots, increases[0].new_spots) == (0, 4)
    assert [p.alert_tag for p in result.promotions] == ["became_available"]

    summary = notify_changes(db, result.promotions, channel, config, clock)
    assert summary.sent == 1
    assert channel.chat_ids == [no_lead_times.telegram_chat_id]
    assert "Spots just opened" in channel.sent[0][1]
    assert db.query(SendRecord).one().lead_time == "became_available"


def test_change_alert_goes_out_once(db, config, clock, channel, make_subscriber):
    make_subscriber()
    _apply(db, config, raw_event(spots_available=0))
    first = _apply(db, config, raw_event(spots_available=2))
    notify_changes(db, first.promotions, channel, config, clock)
    _apply(db, config, raw_event(spots_available=0))
    again = _apply(db, config, raw_event(spots_available=5))
    assert again.promotions
    assert notify_changes(db, again.promotions, channel, config, clock).attempted == 0
    assert len(channel.sent) == 1


def test_new_spots_matches_persisted_capacity(db, config):
    _apply(db, config, raw_event(spots_available=10))
    _apply(db, config, raw_event(spots_available=2))
    event = db.query(AvailabilityEvent).one()
    latest = db.query(ChangeRecord).order_by(ChangeRecord.id.desc()).first()
    assert latest.change_type == "capacity_decreased"
    assert latest.new_spots == event.spots_available == 2


def test_filling_fast_promotion(db, config):
    _apply(db, config, raw_event(spots_available=8))
    result = _apply(db, config, raw_event(spots_available=3))
    assert [p.alert_tag for p in result.promotions] == ["filling_fast"]


def test_unchanged_writes_no_change_record(db, config):
    _apply(db, config, raw_event(spots_available=6))
    result = _apply(db, config, raw_event(spots_available=6, instructor="Kai"))
    assert result.unchanged == 1
    assert db.query(ChangeRecord).count() == 1
    assert db.query(AvailabilityEvent).one().instructor == "Kai"


def test_missing_events_in_range_are_cancelled(db, config):
    inside = raw_event(start="08:00", spots_available=4)
    kept = raw_event(start="12:00")
    outside = raw_event(day="2025-06-25", start="08:00")
    _apply(db, config, outside, start=date(2025, 6, 25), end=date(2025, 6, 25))
    _apply(db, config, inside, kept)

    result = _apply(db, config, kept)
    assert result.as_dict()["cancelled"] == 1
    gone = db.get(AvailabilityEvent, parse_event(inside).id)
    assert gone.is_active is False
    record = db.query(ChangeRecord).filter(ChangeRecord.change_type == "cancelled").one()
    assert record.event_id == gone.id
    assert record.new_spots == gone.spots_available == 4
    assert db.get(AvailabilityEvent, parse_event(outside).id).is_active is True


def test_reappearing_event_is_new_again(db, config):
    _apply(db, config, raw_event())
    _apply(db, config, raw_event(start="12:00"))
    result = _apply(db, config, raw_event())
    assert result.as_dict()["new"] == 1
    assert db.get(AvailabilityEvent, parse_event(raw_event()).id).is_active is True


def test_empty_acquisition_cancels_nothing(db, config):
    _apply(db, config, *(raw_event(start=f"{h:02d}:00") for h in (8, 10, 12, 14)))
    assert _apply(db, config).as_dict()["cancelled"] == 0
    result = _apply(db, config, {"date": "2025-06-15"}, {"session_name": "Beginner Session", "date": "??"})
    assert result.skipped == 2
    assert result.as_dict()["cancelled"] == 0
    assert db.query(AvailabilityEvent).filter(AvailabilityEvent.is_active.is_(True)).count() == 4
    assert db.query(ChangeRecord).filter(ChangeRecord.change_type == "cancelled").count() == 0


def test_unparseable_listing_of_known_session_keeps_it_active(db, config):
    other = raw_event(start="12:00")
    _apply(db, config, raw_event(spots_available=5), other)
    result = _apply(db, config, raw_event(spots_available="full"), other)
    assert result.skipped == 1
    assert result.as_dict()["cancelled"] == 0
    stored = db.get(AvailabilityEvent, parse_event(raw_event()).id)
    assert stored.is_active is True
    assert stored.spots_available == 5


def test_stale_claim_is_rejected(db, config):
    _apply(db, config, raw_event(spots_available=8))
    assert claim_transition(db, parse_event(raw_event(spots_available=3)), 8, True) is True
    db.commit()
    assert claim_transition(db, parse_event(raw_event(spots_available=1)), 8, True) is False
    assert claim_transition(db, parse_event(raw_event(spots_available=1)), None, None) is False
    db.commit()
    assert db.query(AvailabilityEvent).one().spots_available == 3


def test_overlapping_refresh_records_transition_once(db, config, monkeypatch):
    _apply(db, config, raw_event(spots_available=0))
    real_claim = changes.claim_transition

    def claim_after_competitor(db_, snap, prev_spots, prev_active):
        # the other refresh writes the same transition between this run's read and write
        assert real_claim(db_, snap, prev_spots, prev_active)
        db_.add(ChangeRecord(event_id=snap.id, change_type="capacity_increased", old_spots=0, new_spots=4))
        return real_claim(db_, snap, prev_spots, prev_active)

    monkeypatch.setattr(changes, "claim_transition", claim_after_competitor)
    result = _apply(db, config, raw_event(spots_available=4))
    assert result.changes == []
    assert result.promotions == []
    assert db.query(ChangeRecord).filter(ChangeRecord.change_type == "capacity_increased").count() == 1


def test_malformed_events_are_skipped(db, config):
    result = _apply(db, config, raw_event(), {"date": "nope"}, "junk")
    assert result.skipped == 2
    assert result.as_dict()["new"] == 1


def test_no_alert_for_sessions_already_started(db, config, clock, channel, make_subscriber):
    make_subscriber()
    today = NOW.date().isoformat()
    _apply(db, config, raw_event(day=today, start="09:00", spots_available=0), start=NOW.date(), end=NOW.date())
    result = _apply(db, config, raw_event(day=today, start="09:00", spots_available=3), start=NOW.date(), end=NOW.date())
    assert result.promotions
    assert notify_changes(db, result.promotions, channel, config, clock).attempted == 0
    assert channel.sent == []


def test_alert_ignores_lead_time_windows(db, config, clock, channel, make_subscriber):
    make_subscriber(lead_times=["2h"])
    far = (NOW.date() + timedelta(days=5)).isoformat()
    _apply(db, config, raw_event(day=far, spots_available=0))
    result = _apply(db, config, raw_event(day=far, spots_available=2))
    assert notify_changes(db, result.promotions, channel, config, clock).sent == 1
