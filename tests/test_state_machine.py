"""Guard predicates over (record, now); no database involved."""
import time
from datetime import date, datetime, timedelta, timezone

import pytest

from rental_escrow.core.errors import InvalidTransition
from rental_escrow.models.escrow import EscrowRecord, EscrowStatus
from rental_escrow.services import countdown
from rental_escrow.services import state_machine as sm

from conftest import GUEST, HOST, NOW


def make_record(status=EscrowStatus.PENDING, attempts=0, requested_at=None, check_in=date(2024, 1, 1)):
    record = EscrowRecord(
        booking_id="bk-1",
        guest_account=GUEST,
        host_account=HOST,
        amount=100000,
        currency="NGN",
        status=status.value,
        payment_request_attempts=attempts,
        check_in_date=check_in,
        version=1,
    )
    if requested_at is not None:
        record.last_requested_at_ms = countdown.to_epoch_ms(requested_at)
        if status == EscrowStatus.PAYMENT_REQUESTED:
            record.request_deadline_ms = countdown.request_deadline_ms(requested_at)
    return record


class TestEffectiveStatus:

    def test_stored_status_when_deadline_open(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert sm.effective_status(record, NOW + timedelta(seconds=60)) == EscrowStatus.PAYMENT_REQUESTED

    def test_overdue_request_reads_as_expired(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert sm.effective_status(record, NOW + timedelta(seconds=120)) == EscrowStatus.EXPIRED

    @pytest.mark.parametrize("status", list(EscrowStatus))
    def test_every_status_is_one_of_six(self, status):
        assert sm.effective_status(make_record(status), NOW) in set(EscrowStatus)
        assert len(EscrowStatus) == 6


class TestRequestPayment:

    def test_allowed_on_check_in_date(self):
        assert sm.can_request_payment(make_record(), NOW)

    def test_rejected_before_check_in_date(self):
        record = make_record(check_in=date(2024, 1, 2))
        assert not sm.can_request_payment(record, NOW)
        assert "check-in date" in sm.check_request_payment(record, NOW)

    def test_check_in_compared_in_local_time(self):
        # 23:30 UTC on Dec 31 is already Jan 1 in Lagos
        late = NOW.replace(month=12, day=31, year=2023, hour=23, minute=30)
        assert sm.can_request_payment(make_record(), late)

    @pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
    def test_naive_now_is_read_as_utc(self, monkeypatch):
        # host clock far west of UTC must not shift the check-in date
        monkeypatch.setenv("TZ", "America/Los_Angeles")
        time.tzset()
        try:
            naive = datetime(2023, 12, 31, 23, 30)
            assert sm.local_date(naive) == date(2024, 1, 1)
            assert sm.local_date(naive) == sm.local_date(naive.replace(tzinfo=timezone.utc))
            assert sm.can_request_payment(make_record(), naive)
        finally:
            monkeypatch.undo()
            time.tzset()

    def test_rejected_while_request_active(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert not sm.can_request_payment(record, NOW + timedelta(seconds=30))

    def test_re_request_allowed_after_expiry_and_cooldown(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert sm.can_request_payment(record, NOW + timedelta(seconds=121))

    def test_re_request_blocked_by_cooldown(self):
        record = make_record(EscrowStatus.EXPIRED, 1, requested_at=NOW)
        assert sm.check_request_payment(record, NOW + timedelta(seconds=60)) == "payment request cooldown active"


class TestConfirm:

    def test_before_deadline(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert sm.can_confirm(record, NOW + timedelta(seconds=119))

    def test_after_deadline(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert not sm.can_confirm(record, NOW + timedelta(seconds=121))

    def test_not_requested(self):
        assert not sm.can_confirm(make_record(), NOW)


class TestDecline:

    def test_first_request_only_offers_confirm(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert not sm.can_decline(record, NOW)

    def test_second_request_unlocks_decline(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 2, requested_at=NOW)
        assert sm.can_decline(record, NOW)


class TestRefund:

    def test_only_after_expiry(self):
        record = make_record(EscrowStatus.PAYMENT_REQUESTED, 1, requested_at=NOW)
        assert not sm.can_request_refund(record, NOW + timedelta(seconds=60))
        assert sm.can_request_refund(record, NOW + timedelta(seconds=120))

    def test_persisted_expired(self):
        assert sm.can_request_refund(make_record(EscrowStatus.EXPIRED, 1), NOW)


@pytest.mark.parametrize("status", [EscrowStatus.CONFIRMED, EscrowStatus.REFUNDED, EscrowStatus.DECLINED])
@pytest.mark.parametrize("action", list(sm.GUARDS))
def test_terminal_statuses_reject_everything(status, action):
    record = make_record(status, attempts=2)
    assert sm.is_terminal(record)
    with pytest.raises(InvalidTransition) as excinfo:
        sm.ensure_allowed(record, action, NOW + timedelta(days=1))
    assert excinfo.value.current == status.value
    assert excinfo.value.attempted == action


def test_ensure_allowed_returns_target_status():
    assert sm.ensure_allowed(make_record(), sm.REQUEST_PAYMENT, NOW) == EscrowStatus.PAYMENT_REQUESTED


def test_invalid_transition_names_both_statuses():
    record = make_record(check_in=date(2024, 2, 1))
    with pytest.raises(InvalidTransition) as excinfo:
        sm.ensure_allowed(record, sm.CONFIRM_PAYMENT, NOW)
    assert "confirm_payment" in str(excinfo.value)
    assert "pending" in str(excinfo.value)
