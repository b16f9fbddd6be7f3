"""
Send push notifications via Apple Push Notification service (APNs).
Requires APNS_KEY_ID, APNS_TEAM_ID, APNS_BUNDLE_ID, and APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64 in env.
If not configured, send() no-ops (log and return False).
"""
import base64
import binascii
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable

import httpx
import jwt

from lunch_notify.services.channels.base import PushSender

logger = logging.getLogger(__name__)

# APNs host: sandbox for dev builds, production for release
APNS_SANDBOX = "https://api.sandbox.push.apple.com"
APNS_PRODUCTION = "https://api.push.apple.com"

# APNs accepts provider tokens with iat within the last hour; refresh a bit before
JWT_LIFETIME_SECONDS = 55 * 60


def load_p8_key(path: str = "", base64_content: str = "") -> str | None:
    """Load .p8 key from base64 content or a file path. Return None if not set or unreadable."""
    if base64_content:
        try:
            return base64.b64decode(base64_content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            logger.warning("APNS_KEY_P8_BASE64 decode failed: %s", e)
            return None
    if path and Path(path).exists():
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("APNS_KEY_P8_PATH read failed: %s", e)
            return None
    return None


class ApnsAuthToken:
    """ES256 provider token for APNs, rebuilt once it is older than JWT_LIFETIME_SECONDS."""

    def __init__(self, key_id: str, team_id: str, p8_key: str | None, clock: Callable[[], float] = time.time):
        self.key_id = key_id
        self.team_id = team_id
        self._p8_key = p8_key
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return bool(self.key_id and self.team_id and self._p8_key)

    def is_valid(self) -> bool:
        return bool(self._token) and self._clock() < self._expires_at

    def acquire_token(self) -> str | None:
        """Cached token, or a freshly signed one. None if config is missing or signing fails."""
        if not self.is_configured():
            return None
        with self._lock:
            if self.is_valid():
                return self._token
            now = self._clock()
            try:
                token = jwt.encode(
                    {"iss": self.team_id, "iat": int(now)},
                    self._p8_key,
                    algorithm="ES256",
                    headers={"alg": "ES256", "kid": self.key_id},
                )
            except (jwt.PyJWTError, ValueError, TypeError) as e:
                logger.warning("APNs JWT build failed: %s", e, exc_info=True)
                return None
            self._token = token
            self._expires_at = now + JWT_LIFETIME_SECONDS
            return token


class ApnsPushSender(PushSender):
    name = "apns"

    def __init__(
        self,
        auth_token: ApnsAuthToken,
        bundle_id: str,
        use_sandbox: bool = True,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.auth_token = auth_token
        self.bundle_id = bundle_id
        self.base_url = APNS_SANDBOX if use_sandbox else APNS_PRODUCTION
        self.timeout = timeout
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.bundle_id) and self.auth_token.is_configured()

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(http2=True, timeout=self.timeout)
        return self._client

    def send(self, device_token: str, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        """
        Send one push notification to an iOS device via APNs.
        Returns True if sent successfully, False otherwise (config missing or APNs error).
        """
        if not self.bundle_id:
            logger.debug("APNS_BUNDLE_ID not set; skipping push")
            return False
        jwt_token = self.auth_token.acquire_token()
        if not jwt_token:
            logger.debug("APNs not configured (key/team/bundle); skipping push")
            return False
        url = f"{self.base_url}/3/device/{device_token}"
        headers = {
            "authorization": f"bearer {jwt_token}",
            "apns-topic": self.bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
        }
        payload: dict[str, Any] = {
            "aps": {
                "alert": {"title": title, "body": body},
                "sound": "default",
            }
        }
        if data:
            payload.update(data)
        try:
            resp = self._http().post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("APNs request failed: %s", e, exc_info=True)
            return False
        if resp.status_code == 200:
            return True
        logger.warning("APNs returned %s for token %s...: %s", resp.status_code, device_token[:20], resp.text)
        return False
