# Overview: Pytest coverage for the notification outbox: enqueue, dispatch, retries and the CLI.

from datetime import timedelta

from rahmah.models import NotificationOutbox
from rahmah.services import notification_service
from rahmah.services.email_service import EmailDeliveryError
from rahmah.time_utils import utcnow


def _queue(db_session, *recipients):
    rows = notification_service.enqueue_many(
        "magic_link",
        recipients,
        "Your Rahmah login link",
        {"case": {"case_id": "CASE-20261017-ABC123", "first_name": "Maryam"}, "portal_url": "http://portal.test/x", "ttl_days": 7},
    )
    db_session.commit()
    return rows


class TestEnqueue:

    def test_rows_are_rendered_and_pending(self, db_session):
        rows = _queue(db_session, "maryam@example.test")

        assert len(rows) == 1
        row = rows[0]
        assert row.status == "pending"
        assert row.attempts == 0
        assert row.template == "magic_link"
        assert row.html_body and row.text_body

    def test_blank_recipient_is_skipped(self, db_session):
        assert notification_service.enqueue("magic_link", "  ", "Subject") is None
        assert notification_service.enqueue("magic_link", None, "Subject") is None

    def test_enqueue_many_dedupes_case_insensitively(self, db_session, queued):
        _queue(db_session, "a@example.test", "A@Example.test", "", "b@example.test")
        assert [r.recipient for r in queued()] == ["a@example.test", "b@example.test"]

    def test_missing_template_is_logged_not_raised(self, db_session):
        assert notification_service.enqueue("no_such_template", "a@example.test", "Subject") is None

    def test_enqueue_is_not_committed(self, db_session):
        notification_service.enqueue("magic_link", "a@example.test", "Subject", {"portal_url": "x"})
        db_session.rollback()
        assert db_session.query(NotificationOutbox).count() == 0


class TestDispatch:

    def test_dev_mode_marks_sent(self, db_session):
        _queue(db_session, "a@example.test", "b@example.test")

        counts = notification_service.dispatch_pending()

        assert counts == {"sent": 2, "retrying": 0, "failed": 0}
        rows = db_session.query(NotificationOutbox).all()
        assert all(r.status == "sent" and r.sent_at is not None for r in rows)

    def test_limit(self, db_session):
        _queue(db_session, "a@example.test", "b@example.test", "c@example.test")

        counts = notification_service.dispatch_pending(limit=2)

        assert counts["sent"] == 2
        assert db_session.query(NotificationOutbox).filter_by(status="pending").count() == 1

    def test_failure_retries_then_fails(self, app, db_session, monkeypatch):
        def refuse(*args, **kwargs):
            raise EmailDeliveryError("550 mailbox unavailable")

        monkeypatch.setattr(notification_service, "send_email", refuse)
        _queue(db_session, "a@example.test")
        max_attempts = app.config["NOTIFICATION_MAX_ATTEMPTS"]

        for _ in range(max_attempts - 1):
            assert notification_service.dispatch_pending() == {"sent": 0, "retrying": 1, "failed": 0}
        assert notification_service.dispatch_pending() == {"sent": 0, "retrying": 0, "failed": 1}

        row = db_session.query(NotificationOutbox).one()
        assert row.status == "failed"
        assert row.attempts == max_attempts
        assert "550" in row.last_error
        # Failed rows are no longer picked up
        assert notification_service.dispatch_pending() == {"sent": 0, "retrying": 0, "failed": 0}

    def test_overlapping_dispatch_sends_once(self, db_session, monkeypatch):
        _queue(db_session, "a@example.test")
        delivered = []
        overlapping = []

        def send_and_race(recipient, *args, **kwargs):
            # A second on_close hook starts while this send is in flight
            if not overlapping:
                overlapping.append(notification_service.dispatch_pending())
            delivered.append(recipient)

        monkeypatch.setattr(notification_service, "send_email", send_and_race)

        assert notification_service.dispatch_pending() == {"sent": 1, "retrying": 0, "failed": 0}
        assert overlapping == [{"sent": 0, "retrying": 0, "failed": 0}]
        assert delivered == ["a@example.test"]
        row = db_session.query(NotificationOutbox).one()
        assert row.status == "sent"
        assert row.attempts == 1

    def test_row_in_flight_is_not_reclaimed(self, db_session):
        rows = _queue(db_session, "a@example.test")
        rows[0].status = "sending"
        rows[0].claimed_at = utcnow()
        db_session.commit()

        assert notification_service.dispatch_pending() == {"sent": 0, "retrying": 0, "failed": 0}
        assert db_session.query(NotificationOutbox).one().status == "sending"

    def test_abandoned_claim_is_picked_up(self, app, db_session):
        rows = _queue(db_session, "a@example.test")
        rows[0].status = "sending"
        rows[0].claimed_at = utcnow() - timedelta(seconds=app.config["NOTIFICATION_CLAIM_TIMEOUT_SECONDS"] + 60)
        db_session.commit()

        assert notification_service.dispatch_pending()["sent"] == 1
        assert db_session.query(NotificationOutbox).one().status == "sent"

    def test_retry_failed_requeues(self, db_session):
        rows = _queue(db_session, "a@example.test")
        rows[0].status = "failed"
        rows[0].attempts = 5
        db_session.commit()

        assert notification_service.retry_failed() == 1

        row = db_session.query(NotificationOutbox).one()
        assert row.status == "pending"
        assert row.attempts == 0


class TestNotificationCli:

    def test_dispatch_command(self, app, db_session):
        _queue(db_session, "a@example.test")

        result = app.test_cli_runner().invoke(args=["notifications", "dispatch"])

        assert result.exit_code == 0
        assert "Sent 1" in result.output
        assert "0 still pending" in result.output

    def test_retry_failed_command(self, app, db_session):
        rows = _queue(db_session, "a@example.test")
        rows[0].status = "failed"
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["notifications", "retry-failed"])

        assert result.exit_code == 0
        assert "Re-queued 1" in result.output
