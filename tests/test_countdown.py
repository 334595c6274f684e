from datetime import datetime, timedelta, timezone

from rental_escrow.services import countdown

from conftest import NOW


def test_epoch_ms_round_trip_is_exact():
    ms = countdown.to_epoch_ms(NOW)
    assert ms == 1704110400000
    assert countdown.from_epoch_ms(ms) == NOW


def test_naive_datetimes_are_read_as_utc():
    naive = datetime(2024, 1, 1, 12, 0, 0)
    assert countdown.to_epoch_ms(naive) == countdown.to_epoch_ms(NOW)


def test_from_epoch_ms_none():
    assert countdown.from_epoch_ms(None) is None


def test_request_deadline_is_two_minutes_out():
    assert countdown.request_deadline_ms(NOW) - countdown.to_epoch_ms(NOW) == 120_000


def test_remaining_recomputed_from_absolute_deadline():
    deadline = countdown.request_deadline_ms(NOW)
    assert countdown.remaining_ms(deadline, NOW) == 120_000
    # a client that was backgrounded for 90s sees the true remainder
    assert countdown.remaining_ms(deadline, NOW + timedelta(seconds=90)) == 30_000
    assert countdown.remaining_ms(deadline, NOW + timedelta(minutes=10)) == 0


def test_remaining_seconds_rounds_up():
    deadline = countdown.request_deadline_ms(NOW)
    assert countdown.remaining_seconds(deadline, NOW + timedelta(milliseconds=119_001)) == 1
    assert countdown.remaining_seconds(deadline, NOW + timedelta(seconds=120)) == 0


def test_no_deadline_means_nothing_remaining():
    assert countdown.remaining_ms(None, NOW) == 0
    assert not countdown.has_elapsed(None, NOW)


def test_has_elapsed_at_exact_deadline():
    deadline = countdown.request_deadline_ms(NOW)
    assert not countdown.has_elapsed(deadline, NOW + timedelta(seconds=119))
    assert countdown.has_elapsed(deadline, NOW + timedelta(seconds=120))


def test_cooldown_tracked_from_last_request():
    last = countdown.to_epoch_ms(NOW)
    assert countdown.cooldown_end_ms(None) is None
    assert countdown.cooldown_remaining_ms(None, NOW) == 0
    assert countdown.cooldown_remaining_ms(last, NOW + timedelta(seconds=30)) == 90_000
    assert countdown.cooldown_remaining_ms(last, NOW + timedelta(seconds=121)) == 0


def test_utcnow_is_timezone_aware():
    assert countdown.utcnow().tzinfo is timezone.utc
