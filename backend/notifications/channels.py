"""Outbound delivery: confirmation emails and trigger callbacks.

Only production runs reach a channel. Emails are sent by LiveEffects on
behalf of the send-confirmation-email behavior; callbacks are posted by the
trigger service once a run has finished. Dry runs never build either.

A channel reports failure in its DeliveryResult instead of raising, so
the caller decides whether a failed delivery fails its behavior.
"""

import asyncio
import json
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.message import EmailMessage
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

import httpx

from core.webhook_signing import DELIVERY_HEADER, sign_webhook_payload

logger = logging.getLogger(__name__)

EVENT_HEADER = "X-Workflow-Event"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationChannel(str, Enum):
    EMAIL = "email"
    WEBHOOK = "webhook"


@dataclass
class Notification:
    """One outbound message.

    For email ``title`` is the subject and ``message`` the plain-text body.
    For webhooks ``title`` is the event name and ``metadata`` the JSON body.
    """
    title: str
    message: str
    channel: NotificationChannel
    recipient: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    organization_id: Optional[str] = None
    # Webhook only; overrides the channel-wide secret
    signing_secret: Optional[str] = None


@dataclass
class DeliveryResult:
    success: bool
    channel: NotificationChannel
    recipient: str
    message: str = ""
    error: Optional[str] = None
    delivery_id: Optional[str] = None
    delivered_at: Optional[str] = None


class BaseChannel(ABC):
    channel_type: NotificationChannel

    @abstractmethod
    async def send(self, notification: Notification) -> DeliveryResult:
        ...

    def _delivered(self, recipient: str, delivery_id: str, message: str) -> DeliveryResult:
        return DeliveryResult(
            success=True,
            channel=self.channel_type,
            recipient=recipient,
            message=message,
            delivery_id=delivery_id,
            delivered_at=_utcnow(),
        )

    def _failed(self, recipient: str, error: str, delivery_id: Optional[str] = None) -> DeliveryResult:
        logger.error(f"{self.channel_type.value} delivery to {recipient or '<none>'} failed: {error}")
        return DeliveryResult(
            success=False,
            channel=self.channel_type,
            recipient=recipient,
            error=error,
            delivery_id=delivery_id,
        )


class EmailChannel(BaseChannel):
    """Plain-text mail over SMTP.

    ``config`` keys: smtp_host, smtp_port, smtp_user, smtp_password,
    from_address, use_tls (see Settings.smtp_config).
    """

    channel_type = NotificationChannel.EMAIL

    def __init__(self, config: Optional[dict] = None):
        self.config = config or {}

    async def send(self, notification: Notification) -> DeliveryResult:
        if not notification.recipient:
            return self._failed("", "No recipient address")

        host = self.config.get("smtp_host", "localhost")
        message_id = f"<{uuid4()}@{host}>"

        mail = EmailMessage()
        mail["Subject"] = notification.title
        mail["From"] = self.config.get("from_address", "noreply@localhost")
        mail["To"] = notification.recipient
        mail["Message-ID"] = message_id
        mail.set_content(notification.message)

        try:
            # smtplib blocks
            await asyncio.to_thread(self._deliver, mail)
        except (smtplib.SMTPException, OSError) as e:
            return self._failed(notification.recipient, str(e), message_id)

        return self._delivered(notification.recipient, message_id, "Email sent")

    def _deliver(self, mail: EmailMessage) -> None:
        with smtplib.SMTP(self.config.get("smtp_host", "localhost"), self.config.get("smtp_port", 587)) as smtp:
            if self.config.get("use_tls", True):
                smtp.starttls()
            if self.config.get("smtp_user") and self.config.get("smtp_password"):
                smtp.login(self.config["smtp_user"], self.config["smtp_password"])
            smtp.send_message(mail)


class WebhookChannel(BaseChannel):
    """JSON POST of ``notification.metadata`` to ``notification.recipient``.

    ``config`` keys: secret (bodies are HMAC-signed when set, unless the
    notification brings its own signing_secret), timeout,
    headers (extra request headers). ``transport`` lets tests plug in an
    httpx.MockTransport.
    """

    channel_type = NotificationChannel.WEBHOOK

    def __init__(self, config: Optional[dict] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or {}
        self._transport = transport

    def _headers(self, notification: Notification, body: bytes, delivery_id: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", EVENT_HEADER: notification.title}
        headers.update(self.config.get("headers") or {})
        secret = notification.signing_secret or self.config.get("secret")
        if secret:
            headers.update(sign_webhook_payload(body, secret, delivery_id=delivery_id))
        else:
            headers[DELIVERY_HEADER] = delivery_id
        return headers

    async def send(self, notification: Notification) -> DeliveryResult:
        url = notification.recipient
        if not url:
            return self._failed("", "No webhook URL")

        delivery_id = str(uuid4())
        body = json.dumps(notification.metadata, default=str, separators=(",", ":")).encode()

        try:
            async with httpx.AsyncClient(timeout=self.config.get("timeout", 15), transport=self._transport) as client:
                response = await client.post(url, content=body, headers=self._headers(notification, body, delivery_id))
            response.raise_for_status()
        except httpx.HTTPError as e:
            return self._failed(url, str(e) or type(e).__name__, delivery_id)

        return self._delivered(url, delivery_id, f"Webhook delivered (HTTP {response.status_code})")
