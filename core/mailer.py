"""
core/mailer.py -- Outbound email for the password-reset flow.

Two implementations share one duck-typed interface,
send_password_reset(to, from_name, reset_link):

  SMTPMailer    -- hands the message to an SMTP relay (stdlib smtplib).
  LogOnlyMailer -- logs that a message would be sent; used when EMAIL_HOST
                   is empty. Never logs the link, which carries the raw token.

Both raise nothing on success and SMTPMailer raises MailDeliveryError on any
relay failure so the route can answer 500.

Layer rule: core/ is the kernel. No imports from api/, auth/, bootstrap/, or contact/.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from core.errors import MailDeliveryError

logger = logging.getLogger("storm.mail")

_SUBJECT = "Password Reset Request"

_HTML_TEMPLATE = """\
<p>You requested a password reset for your account.</p>
<p>Please click on the following link to reset your password:</p>
<a href="{link}">{link}</a>
<p>This link will expire in 1 hour.</p>
<p>If you did not request this, please ignore this email.</p>
"""

_TEXT_TEMPLATE = """\
You requested a password reset for your account.

Open the following link to reset your password:
{link}

This link will expire in 1 hour.
If you did not request this, please ignore this email.
"""


def build_reset_message(to: str, from_name: str, from_address: str, reset_link: str) -> EmailMessage:
    """Build the multipart (text + HTML) reset email."""
    msg = EmailMessage()
    msg["Subject"] = _SUBJECT
    msg["From"] = formataddr((from_name or "Storm", from_address))
    msg["To"] = to
    msg.set_content(_TEXT_TEMPLATE.format(link=reset_link))
    msg.add_alternative(_HTML_TEMPLATE.format(link=reset_link), subtype="html")
    return msg


class SMTPMailer:
    """Deliver mail through a plain SMTP relay (no TLS, no auth -- local relay)."""

    def __init__(self, host: str, port: int, from_address: str, timeout: float = 10.0) -> None:
        self.host = host
        self.port = port
        self.from_address = from_address
        self.timeout = timeout

    def send_password_reset(self, to: str, from_name: str, reset_link: str) -> None:
        msg = build_reset_message(to, from_name, self.from_address, reset_link)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending password reset email via %s:%d: %s", self.host, self.port, exc)
            raise MailDeliveryError("Failed to send password reset email.") from exc
        logger.info("Password reset email sent")


class LogOnlyMailer:
    """Mailer that logs instead of sending. Use when no SMTP relay is configured."""

    def send_password_reset(self, to: str, from_name: str, reset_link: str) -> None:
        logger.info("Password reset email not sent (no relay configured, sender=%r)", from_name)


def build_mailer(host: str, port: int, from_address: str) -> SMTPMailer | LogOnlyMailer:
    if not host:
        return LogOnlyMailer()
    return SMTPMailer(host, port, from_address)
