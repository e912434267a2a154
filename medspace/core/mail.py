from email.message import EmailMessage
import logging
import re
import smtplib

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the SMTP relay."""

class Mailer:
    """Thin SMTP client. One connection per message."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, recipient: str, subject: str, body: str, html: bool = False) -> None:
        settings = self.settings
        if not settings.SMTP_HOST:
            raise MailDeliveryError("SMTP is not configured")

        message = EmailMessage()
        message["From"] = settings.mail_sender or f"no-reply@{settings.SMTP_HOST}"
        message["To"] = recipient
        message["Subject"] = subject
        if html:
            message.set_content(re.sub(r"<[^>]+>", "", body))
            message.add_alternative(body, subtype="html")
        else:
            message.set_content(body)

        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as smtp:
                if settings.SMTP_USE_TLS:
                    smtp.starttls()
                if settings.SMTP_USER and settings.SMTP_PASSWORD:
                    smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(str(exc)) from exc

        logger.debug(f"Mail '{subject}' handed to relay for {recipient}")

def get_mailer() -> Mailer:
    """Mailer dependency."""
    return Mailer(get_settings())
