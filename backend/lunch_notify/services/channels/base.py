"""Channel sender interfaces. send() returns True on success; senders never raise."""
from abc import ABC, abstractmethod
from typing import Any


class EmailSender(ABC):
    name = "email"

    @abstractmethod
    def send(self, to: str, subject: str, html: str, text: str | None = None) -> bool:
        """Send one email. Return False (and log) on any failure."""


class PushSender(ABC):
    name = "push"

    @abstractmethod
    def send(self, device_token: str, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        """Send one push to a device. Return False (and log) on any failure."""
