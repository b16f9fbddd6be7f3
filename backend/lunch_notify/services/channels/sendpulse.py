"""
Send email through the SendPulse REST API (OAuth client-credentials).
Requires SENDPULSE_CLIENT_ID, SENDPULSE_CLIENT_SECRET and EMAIL_FROM in env.
"""
import logging
import re
import threading
import time
from typing import Callable

import httpx

from lunch_notify.services.channels.base import EmailSender

logger = logging.getLogger(__name__)

# Refresh this many seconds before the provider says the token expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60

_TAG_RE = re.compile(r"<[^>]+>")


class SendPulseError(Exception):
    pass


class SendPulseToken:
    """Access token for the SendPulse API: fetched on demand, reused until shortly before expiry."""

    def __init__(
        self,
        client: httpx.Client,
        api_url: str,
        client_id: str,
        client_secret: str,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._api_url = api_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = threading.Lock()

    def is_valid(self) -> bool:
        return bool(self._token) and self._clock() < self._expires_at

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0

    def acquire_token(self) -> str:
        """Return a valid token, fetching a new one if needed. Raises SendPulseError on failure."""
        with self._lock:
            if self.is_valid():
                return self._token
            try:
                resp = self._client.post(
                    f"{self._api_url}/oauth/access_token",
                    json={
                        "grant_type": "client_credentials",
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                    },
                )
            except httpx.HTTPError as e:
                raise SendPulseError(f"token request failed: {e}") from e
            if resp.status_code != 200:
                raise SendPulseError(f"token request returned {resp.status_code}: {resp.text[:200]}")
            data = resp.json()
            token = data.get("access_token")
            if not token:
                raise SendPulseError("token response missing access_token")
            expires_in = int(data.get("expires_in") or 3600)
            self._token = token
            self._expires_at = self._clock() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
            return token


class SendPulseEmailSender(EmailSender):
    name = "sendpulse"

    def __init__(
        self,
        api_url: str,
        client_id: str,
        client_secret: str,
        from_email: str,
        from_name: str = "Daily Lunch",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_url = api_url.rstrip("/")
        self.from_email = from_email
        self.from_name = from_name
        self._configured = bool(client_id and client_secret and from_email)
        self._client = client or httpx.Client(timeout=timeout)
        self.token = SendPulseToken(self._client, self.api_url, client_id, client_secret, clock=clock)

    def is_configured(self) -> bool:
        return self._configured

    def _payload(self, to: str, subject: str, html: str, text: str | None) -> dict:
        return {
            "email": {
                "html": html,
                "text": text or _TAG_RE.sub("", html).strip(),
                "subject": subject,
                "from": {"name": self.from_name, "email": self.from_email},
                "to": [{"name": to.split("@")[0], "email": to}],
            }
        }

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        to = (to or "").strip()
        if not to:
            return False
        if not self.is_configured():
            logger.debug("SendPulse not configured; skipping email to %s", to)
            return False
        try:
            token = self.token.acquire_token()
            resp = self._client.post(
                f"{self.api_url}/smtp/emails",
                json=self._payload(to, subject, html, text),
                headers={"Authorization": f"Bearer {token}"},
            )
        except (SendPulseError, httpx.HTTPError) as e:
            logger.warning("SendPulse send to %s failed: %s", to, e)
            return False
        if resp.status_code == 401:
            # Revoked early; next send fetches a fresh one
            self.token.invalidate()
        if resp.status_code >= 300:
            logger.warning("SendPulse returned %s for %s: %s", resp.status_code, to, resp.text[:200])
            return False
        logger.info("Email sent via SendPulse to %s: %s", to, subject)
        return True
