"""
Email senders: SMTP (Gmail or other) and a log-only placeholder.
Set EMAIL_PROVIDER=smtp with SMTP_USER, SMTP_PASSWORD (and optionally EMAIL_FROM) in .env.
Use a Gmail App Password (not your normal password).
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from lunch_notify.services.channels.base import EmailSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str = "",
        from_name: str = "Daily Lunch",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.user = (user or "").strip()
        self.password = (password or "").strip()
        self.from_address = (from_address or "").strip()
        self.from_name = from_name
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def _from_header(self) -> str:
        if self.from_address:
            return f"{self.from_name} <{self.from_address}>"
        if self.user:
            return f"{self.from_name} <{self.user}>"
        return f"{self.from_name} <noreply@localhost>"

    def build_message(self, to: str, subject: str, html: str, text: str | None = None) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._from_header()
        msg["To"] = to
        if text:
            msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))
        return msg

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        to = (to or "").strip()
        if not to:
            return False
        if not self.is_configured():
            logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping email to %s", to)
            return False
        msg = self.build_message(to, subject, html, text)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.from_address or self.user, [to], msg.as_string())
            logger.info("Email sent to %s: %s", to, subject)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send to %s failed: %s", to, e, exc_info=True)
            return False


class LogEmailSender(EmailSender):
    """No provider configured: log what would have been sent and report success."""

    name = "log"

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        logger.info("Email (log only) to %s: %s", to, subject)
        return True
