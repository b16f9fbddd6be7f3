"""Channel senders and the factories that pick them from settings."""
import logging

from lunch_notify.config import Settings
from lunch_notify.services.channels.apns import ApnsAuthToken, ApnsPushSender, load_p8_key
from lunch_notify.services.channels.base import EmailSender, PushSender
from lunch_notify.services.channels.email_senders import LogEmailSender, SmtpEmailSender
from lunch_notify.services.channels.sendpulse import SendPulseEmailSender

logger = logging.getLogger(__name__)


def build_email_sender(settings: Settings) -> EmailSender:
    provider = settings.email_provider
    if provider == "smtp":
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_address=settings.email_from,
            from_name=settings.email_from_name,
            timeout=settings.channel_timeout_seconds,
        )
    if provider == "sendpulse":
        return SendPulseEmailSender(
            api_url=settings.sendpulse_api_url,
            client_id=settings.sendpulse_client_id,
            client_secret=settings.sendpulse_client_secret,
            from_email=settings.email_from,
            from_name=settings.email_from_name,
            timeout=settings.channel_timeout_seconds,
        )
    if provider != "log":
        logger.warning("Unknown EMAIL_PROVIDER %r; emails will only be logged", provider)
    return LogEmailSender()


def build_push_sender(settings: Settings) -> PushSender:
    auth = ApnsAuthToken(
        key_id=settings.apns_key_id,
        team_id=settings.apns_team_id,
        p8_key=load_p8_key(settings.apns_key_p8_path, settings.apns_key_p8_base64),
    )
    return ApnsPushSender(
        auth,
        bundle_id=settings.apns_bundle_id,
        use_sandbox=settings.apns_use_sandbox,
        timeout=settings.channel_timeout_seconds,
    )


__all__ = [
    "ApnsAuthToken",
    "ApnsPushSender",
    "EmailSender",
    "LogEmailSender",
    "PushSender",
    "SendPulseEmailSender",
    "SmtpEmailSender",
    "build_email_sender",
    "build_push_sender",
]
