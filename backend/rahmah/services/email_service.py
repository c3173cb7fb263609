# Overview: SMTP transport for outbox emails; logs instead of sending when SMTP is not configured.

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app


class EmailDeliveryError(Exception):
    """Raised when the SMTP server rejects or cannot take a message."""
    pass


def is_email_configured() -> bool:
    return bool(current_app.config.get("SMTP_HOST"))


def send_email(to_email: str, subject: str, html_body: str, text_body: str | None = None) -> None:
    """
    Send one email.

    In development mode (SMTP_HOST empty) the email is logged, not sent.
    Raises EmailDeliveryError on transport failure.
    """
    config = current_app.config

    if not is_email_configured():
        current_app.logger.info("[DEV MODE] Email to %s: %s", to_email, subject)
        current_app.logger.debug("[DEV MODE] Email body: %s", text_body or html_body[:200])
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = config["SMTP_FROM"]
    msg["To"] = to_email

    if text_body:
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    try:
        with smtplib.SMTP(config["SMTP_HOST"], config["SMTP_PORT"], timeout=30) as server:
            if config.get("SMTP_USE_TLS"):
                server.starttls()
            if config.get("SMTP_USER"):
                server.login(config["SMTP_USER"], config["SMTP_PASSWORD"])
            server.sendmail(config["SMTP_FROM"], [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(str(e)) from e

    current_app.logger.info("Email sent to %s: %s", to_email, subject)
