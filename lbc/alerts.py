from __future__ import annotations

import smtplib
import socket
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .db import log_event
from .settings import settings


def _smtp_configured() -> bool:
    return all(
        [
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
            settings.email_to,
        ]
    )


def send_email(subject: str, body: str) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - LBC_ENABLE_EMAIL=true
      - LBC_SMTP_HOST / LBC_SMTP_PORT
      - LBC_SMTP_USER / LBC_SMTP_PASSWORD
      - LBC_EMAIL_FROM / LBC_EMAIL_TO
    """
    if not settings.enable_email or not _smtp_configured():
        return False

    msg = MIMEMultipart()
    msg["From"] = settings.email_from
    msg["To"] = settings.email_to
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain"))

    try:
        server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30)
        try:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
        finally:
            server.quit()
        return True
    except (smtplib.SMTPException, OSError) as e:
        log_event("WARN", f"Could not send alert email: {type(e).__name__}: {e}")
        return False


def alert_failure(kind: str, detail: str) -> bool:
    """Mail a convergence failure (rejected config, failed reload, ...)."""
    host = socket.gethostname()
    subject = f"HAProxy convergence failed on {host}: {kind}"
    body = f"Host: {host}\nFailure: {kind}\n\n{detail}"
    return send_email(subject, body)
