"""
Email transport.

Two backends, picked by ``settings.email_backend``:
    - "log": the message is written to the application log (development)
    - "smtp": the message is sent through the configured SMTP server

Errors propagate to the caller; the notification worker owns retries.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from talentpool.config import Settings, get_settings

logger = logging.getLogger(__name__)


def build_message(sender: str, recipient: str, subject: str, body: str) -> MIMEMultipart:
    message = MIMEMultipart()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = subject
    message.attach(MIMEText(body, "plain"))
    return message


def send_email(recipient: str, subject: str, body: str, settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()

    if settings.email_backend != "smtp" or not settings.smtp_host:
        logger.info(f"[email:log] to={recipient} subject={subject!r} ({len(body)} chars)")
        return

    message = build_message(settings.smtp_from_email, recipient, subject, body)
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_username:
            server.login(settings.smtp_username, settings.smtp_password)
        server.sendmail(settings.smtp_from_email, [recipient], message.as_string())

    logger.info(f"Sent email to {recipient}: {subject!r}")
