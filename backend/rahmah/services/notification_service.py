# Overview: Service-layer operations for the notification outbox; enqueue in-transaction, dispatch later.

"""
Notification Outbox

WHY: Emails must never block or roll back the state change that caused them,
and failed sends must be retryable and visible. Every email intent is
rendered and written as a NotificationOutbox row inside the caller's
transaction; delivery happens afterwards.

DELIVERY:
- NOTIFICATION_DISPATCH="on_close": the app dispatches after the response
  has been sent (see schedule_dispatch)
- NOTIFICATION_DISPATCH="manual": only `flask notifications dispatch`
- A dispatcher claims each row (pending -> sending) before sending it
- Failures are logged and counted on the row; after
  NOTIFICATION_MAX_ATTEMPTS the row is marked failed

Nothing in this module raises into a request.
"""

from datetime import timedelta

from flask import current_app, g, has_request_context, render_template
from sqlalchemy import and_, or_, update

from ..extensions import db
from ..models import NotificationOutbox
from .email_service import send_email
from rahmah.time_utils import utcnow


def _base_context() -> dict:
    config = current_app.config
    return {
        "app_name": config.get("APP_NAME", "Rahmah Exchange"),
        "base_url": (config.get("APP_BASE_URL") or "").rstrip("/"),
    }


def enqueue(
    template: str,
    recipient: str | None,
    subject: str,
    context: dict | None = None,
    *,
    tenant_id: int | None = None,
    applicant_id: int | None = None,
) -> NotificationOutbox | None:
    """
    Render `email/<template>.html|.txt` and queue it for `recipient`.

    The row is added to the session, not committed; it becomes durable with
    the caller's commit. Returns None (and logs) when there is no recipient
    or the template fails to render.
    """
    recipient = (recipient or "").strip()
    if not recipient:
        return None

    values = _base_context()
    values.update(context or {})
    values.setdefault("subject", subject)

    try:
        html_body = render_template(f"email/{template}.html", **values)
        text_body = render_template(f"email/{template}.txt", **values)
    except Exception:
        current_app.logger.exception("Failed to render email template %s", template)
        return None

    row = NotificationOutbox(
        tenant_id=tenant_id,
        applicant_id=applicant_id,
        template=template,
        recipient=recipient,
        subject=subject,
        html_body=html_body,
        text_body=text_body,
        status="pending",
        attempts=0,
    )
    db.session.add(row)

    if has_request_context():
        g.notifications_queued = True

    return row


def enqueue_many(template: str, recipients, subject: str, context: dict | None = None, **kwargs) -> list:
    """Queue one email per distinct recipient address (case-insensitive)."""
    seen: set[str] = set()
    rows = []
    for recipient in recipients:
        key = (recipient or "").strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        row = enqueue(template, recipient, subject, context, **kwargs)
        if row is not None:
            rows.append(row)
    return rows


def _claim(row_id: int, stale_before) -> bool:
    """
    Move one row to "sending" if it is still unowned.

    The conditional UPDATE is the lock: of two dispatchers racing for the same
    row, only one sees rowcount == 1.
    """
    stmt = (
        update(NotificationOutbox)
        .where(
            NotificationOutbox.id == row_id,
            or_(
                NotificationOutbox.status == "pending",
                and_(NotificationOutbox.status == "sending", NotificationOutbox.claimed_at < stale_before),
            ),
        )
        .values(status="sending", claimed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.commit()
    return bool(result.rowcount)


def dispatch_pending(limit: int | None = None) -> dict:
    """
    Send pending outbox rows, oldest first.

    Each row is claimed before its send, so overlapping dispatches (two
    on_close hooks, or a hook and the CLI) never deliver the same row twice.
    Rows stuck in "sending" past NOTIFICATION_CLAIM_TIMEOUT_SECONDS are
    picked up again.

    Returns counts: {"sent": n, "retrying": n, "failed": n}.
    """
    config = current_app.config
    max_attempts = config.get("NOTIFICATION_MAX_ATTEMPTS", 5)
    limit = limit or config.get("NOTIFICATION_BATCH_SIZE", 50)
    stale_before = utcnow() - timedelta(seconds=config.get("NOTIFICATION_CLAIM_TIMEOUT_SECONDS", 600))

    candidate_ids = [
        row_id for (row_id,) in (
            db.session.query(NotificationOutbox.id)
            .filter(or_(
                NotificationOutbox.status == "pending",
                and_(NotificationOutbox.status == "sending", NotificationOutbox.claimed_at < stale_before),
            ))
            .order_by(NotificationOutbox.id)
            .limit(limit)
            .all()
        )
    ]

    counts = {"sent": 0, "retrying": 0, "failed": 0}
    for row_id in candidate_ids:
        if not _claim(row_id, stale_before):
            continue
        row = db.session.get(NotificationOutbox, row_id)

        try:
            send_email(row.recipient, row.subject, row.html_body, row.text_body)
        except Exception as e:
            row.attempts += 1
            row.last_error = str(e)[:2000]
            if row.attempts >= max_attempts:
                row.status = "failed"
                counts["failed"] += 1
            else:
                row.status = "pending"
                counts["retrying"] += 1
            current_app.logger.warning(
                "Notification %s to %s failed (attempt %s): %s",
                row.id, row.recipient, row.attempts, e,
            )
        else:
            row.attempts += 1
            row.status = "sent"
            row.sent_at = utcnow()
            row.last_error = None
            counts["sent"] += 1
        db.session.commit()

    return counts


def retry_failed() -> int:
    """Put failed rows back in the queue with a fresh attempt budget."""
    rows = db.session.query(NotificationOutbox).filter_by(status="failed").all()
    for row in rows:
        row.status = "pending"
        row.attempts = 0
    db.session.commit()
    return len(rows)


def schedule_dispatch(response):
    """
    after_request hook: when this request queued emails, send them once the
    response has been handed to the client.
    """
    if not g.get("notifications_queued"):
        return response
    if current_app.config.get("NOTIFICATION_DISPATCH") != "on_close":
        return response

    app = current_app._get_current_object()

    def _dispatch():
        with app.app_context():
            try:
                dispatch_pending()
            except Exception:
                app.logger.exception("Failed to dispatch queued notifications")

    response.call_on_close(_dispatch)
    return response
