"""
Outgoing email over SMTP
"""

import logging
import smtplib
from email.message import EmailMessage

from fastapi import Depends

from config import Settings, get_settings
from errors import UpstreamError

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_email
        self.password = settings.smtp_password
        self.sender = f"{settings.from_name} <{settings.from_email}>"

    def send(self, email: str, subject: str, message: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = email
        msg["Subject"] = subject
        msg.set_content(message)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Sending %r to %s failed: %s", subject, email, e)
            raise UpstreamError("Email could not be sent") from e
        logger.info("Sent %r to %s", subject, email)


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(settings)
