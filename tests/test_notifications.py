from datetime import timedelta

from apscheduler.triggers.interval import IntervalTrigger

from rental_escrow.jobs.expiry_sweeper import build_scheduler, expire_overdue_requests, run_sweep
from rental_escrow.models.escrow import EscrowStatus
from rental_escrow.services import escrow, notifications
from rental_escrow.services.notifications import DatabaseNotifier, PendingNotification

from conftest import GUEST, NOW, FailingNotifier, RecordingNotifier


def test_dispatch_swallows_notifier_failures(caplog):
    pending = [PendingNotification(notifications.PAYMENT_REQUESTED, GUEST, {"booking_id": "bk-1"})]
    assert notifications.dispatch(FailingNotifier(), pending) == 0
    assert "Error sending payment_requested notification" in caplog.text


def test_dispatch_delivers_in_order():
    notifier = RecordingNotifier()
    pending = [
        PendingNotification("a", GUEST),
        PendingNotification("b", GUEST),
    ]
    assert notifications.dispatch(notifier, pending) == 2
    assert notifier.events() == ["a", "b"]


def test_database_notifier_writes_inbox(session_factory, run):
    DatabaseNotifier(session_factory).notify("payment_requested", GUEST, {"booking_id": "bk-1"})
    inbox = run(notifications.list_notifications, GUEST.upper())
    assert len(inbox) == 1
    assert inbox[0].payload == {"booking_id": "bk-1"}
    assert inbox[0].read is False


def test_logging_notifier(caplog):
    caplog.set_level("INFO")
    notifications.LoggingNotifier().notify("payment_confirmed", "host@example.com", {"amount": 1})
    assert "payment_confirmed" in caplog.text


class TestExpirySweeper:

    def test_expires_only_overdue_requests(self, run, add_booking):
        for booking_id in ("bk-old", "bk-fresh", "bk-idle"):
            run(escrow.create_escrow, add_booking(booking_id=booking_id))
        run(escrow.request_payment, "bk-old", NOW)
        run(escrow.request_payment, "bk-fresh", NOW + timedelta(seconds=100))

        expired, pending = run(expire_overdue_requests, NOW + timedelta(seconds=150))
        assert expired == ["bk-old"]
        assert [n.event for n in pending] == [notifications.REFUND_AVAILABLE]
        assert run(escrow.get_escrow, "bk-old").status == EscrowStatus.EXPIRED.value
        assert run(escrow.get_escrow, "bk-fresh").status == EscrowStatus.PAYMENT_REQUESTED.value
        assert run(escrow.get_escrow, "bk-idle").status == EscrowStatus.PENDING.value

    def test_run_sweep_commits_and_notifies(self, run, add_booking, session_factory):
        run(escrow.create_escrow, add_booking())
        run(escrow.request_payment, "bk-1", NOW)

        notifier = RecordingNotifier()
        expired = run_sweep(session_factory, notifier, now=NOW + timedelta(minutes=5))
        assert expired == ["bk-1"]
        assert notifier.events() == [notifications.REFUND_AVAILABLE]
        assert run(escrow.get_escrow, "bk-1").status == EscrowStatus.EXPIRED.value

    def test_failing_notifier_does_not_undo_expiry(self, run, add_booking, session_factory):
        run(escrow.create_escrow, add_booking())
        run(escrow.request_payment, "bk-1", NOW)

        run_sweep(session_factory, FailingNotifier(), now=NOW + timedelta(minutes=5))
        assert run(escrow.get_escrow, "bk-1").status == EscrowStatus.EXPIRED.value

    def test_scheduler_registers_sweep_job(self, run, add_booking, session_factory):
        notifier = RecordingNotifier()
        scheduler = build_scheduler(session_factory, notifier, 15)

        jobs = scheduler.get_jobs()
        assert [job.id for job in jobs] == ["escrow_expiry_sweep"]
        job = jobs[0]
        assert isinstance(job.trigger, IntervalTrigger)
        assert job.trigger.interval == timedelta(seconds=15)
        assert job.func is run_sweep

        run(escrow.create_escrow, add_booking())
        run(escrow.request_payment, "bk-1", NOW)
        assert job.func(*job.args, now=NOW + timedelta(minutes=5)) == ["bk-1"]
        assert notifier.events() == [notifications.REFUND_AVAILABLE]
