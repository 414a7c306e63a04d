"""Best-effort user notifications with a prioritized provider fallback chain.

Lifecycle transitions call ``Notifier.notify`` after they commit. The call
schedules delivery on the running event loop and returns immediately; the
transition result never depends on whether the message got through.

Delivery policy:
- Providers are tried in priority order
- Each provider gets max_retries + 1 attempts, each bounded by a timeout,
  with a fixed delay between attempts
- When every provider is exhausted the failure is logged and dropped

Usage:
    notifier = Notifier.from_settings(settings.notifications)
    notifier.notify(merchant_id, NotificationKind.DELIVERY_ACCEPTED, {"delivery_id": "..."})
    ...
    await notifier.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from entregahub.core.config import NotificationProviderName
from entregahub.services.errors import NotificationUnavailableError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from entregahub.core.config import NotificationSettings

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """User-facing lifecycle events."""

    DELIVERY_ACCEPTED = "delivery_accepted"
    DELIVERY_COMPLETED = "delivery_completed"
    DELIVERY_CANCELED_BY_COURIER = "delivery_canceled_by_courier"
    DELIVERY_CANCELED_BY_MERCHANT = "delivery_canceled_by_merchant"
    DELIVERY_CANCELED_BY_ADMIN = "delivery_canceled_by_admin"
    DELIVERY_ISSUE_REPORTED = "delivery_issue_reported"


MESSAGE_TEMPLATES: dict[NotificationKind, str] = {
    NotificationKind.DELIVERY_ACCEPTED: "Your delivery {ref} was accepted by a courier.",
    NotificationKind.DELIVERY_COMPLETED: "Your delivery {ref} has been completed!",
    NotificationKind.DELIVERY_CANCELED_BY_COURIER: (
        "The courier gave up delivery {ref}. It is no longer assigned."
    ),
    NotificationKind.DELIVERY_CANCELED_BY_MERCHANT: "Delivery {ref} was canceled by the merchant.",
    NotificationKind.DELIVERY_CANCELED_BY_ADMIN: "Delivery {ref} was canceled by an administrator.",
    NotificationKind.DELIVERY_ISSUE_REPORTED: "An issue was reported on delivery {ref}: {reason}",
}


@dataclass(frozen=True, slots=True)
class NotificationMessage:
    """A rendered notification addressed to one user.

    Attributes:
        user_id: Recipient account.
        kind: Lifecycle event that triggered the message.
        text: Human-readable message body.
        payload: Structured data for providers that forward it.
        created_at: When the message was produced.
    """

    user_id: UUID
    kind: NotificationKind
    text: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_json(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "kind": self.kind.value,
            "text": self.text,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
        }


def render_message(kind: NotificationKind, payload: dict[str, Any]) -> str:
    """Render the message body for a notification kind."""
    delivery_id = str(payload.get("delivery_id", ""))
    return MESSAGE_TEMPLATES[kind].format(
        ref=delivery_id[:8],
        reason=payload.get("reason", ""),
    )


class NotificationProvider(Protocol):
    """A single delivery channel (SMS gateway, push relay, console...)."""

    name: str

    async def send(self, message: NotificationMessage) -> None:
        """Deliver the message or raise."""
        ...


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Per-provider attempt policy.

    Attributes:
        max_retries: Extra attempts after the first one.
        retry_delay: Seconds to wait between attempts.
        timeout: Seconds each attempt may take.
    """

    max_retries: int = 2
    retry_delay: float = 1.0
    timeout: float = 5.0


class LogNotificationProvider:
    """Writes notifications to the application log (development)."""

    name = "log"

    async def send(self, message: NotificationMessage) -> None:
        logger.info(
            "[NOTIFY] user=%s kind=%s text=%s",
            message.user_id,
            message.kind.value,
            message.text,
        )


class WebhookNotificationProvider:
    """POSTs notifications as JSON to an outbound messaging gateway.

    The gateway owns phone lookup and channel selection (WhatsApp, SMS, push).
    """

    name = "webhook"

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None

    async def send(self, message: NotificationMessage) -> None:
        response = await self._client.post(self._url, json=message.to_json())
        response.raise_for_status()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class Notifier:
    """Fire-and-forget notification dispatcher.

    Example:
        notifier = Notifier([WebhookNotificationProvider(url), LogNotificationProvider()])
        notifier.notify(user_id, NotificationKind.DELIVERY_COMPLETED, {"delivery_id": "..."})
    """

    def __init__(
        self,
        providers: Sequence[NotificationProvider],
        policy: RetryPolicy | None = None,
        *,
        enabled: bool = True,
    ) -> None:
        self._providers = list(providers)
        self._policy = policy or RetryPolicy()
        self._enabled = enabled
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(cls, settings: NotificationSettings) -> Notifier:
        """Build the provider chain in the configured priority order."""
        providers: list[NotificationProvider] = []
        for name in settings.providers:
            if name == NotificationProviderName.WEBHOOK:
                providers.append(WebhookNotificationProvider(settings.webhook_url))
            elif name == NotificationProviderName.LOG:
                providers.append(LogNotificationProvider())

        policy = RetryPolicy(
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_seconds,
            timeout=settings.timeout_seconds,
        )
        return cls(providers, policy, enabled=settings.enabled)

    @property
    def providers(self) -> list[NotificationProvider]:
        return list(self._providers)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def notify(
        self,
        user_id: UUID,
        kind: NotificationKind,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """Schedule a notification without waiting for it. Never raises."""
        if not self._enabled:
            return

        data = dict(payload or {})
        message = NotificationMessage(
            user_id=user_id,
            kind=kind,
            text=render_message(kind, data),
            payload=data,
        )

        try:
            task = asyncio.get_running_loop().create_task(self._deliver_quietly(message))
        except RuntimeError:
            logger.error(
                "No running event loop, dropping notification: user=%s kind=%s",
                user_id,
                kind.value,
            )
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def deliver(self, message: NotificationMessage) -> str:
        """Walk the provider chain until one accepts the message.

        Returns:
            Name of the provider that delivered the message.

        Raises:
            NotificationUnavailableError: If every provider failed.
        """
        last_error: BaseException | None = None

        for provider in self._providers:
            attempts = self._policy.max_retries + 1
            for attempt in range(1, attempts + 1):
                if attempt > 1:
                    await asyncio.sleep(self._policy.retry_delay)
                try:
                    await asyncio.wait_for(provider.send(message), timeout=self._policy.timeout)
                except Exception as e:
                    last_error = e
                    logger.warning(
                        "Notification attempt failed: provider=%s, attempt=%d/%d, error=%r",
                        provider.name,
                        attempt,
                        attempts,
                        e,
                    )
                    continue

                logger.debug(
                    "Notification sent: provider=%s, user=%s, kind=%s",
                    provider.name,
                    message.user_id,
                    message.kind.value,
                )
                return provider.name

            logger.warning(
                "Provider exhausted, falling back: provider=%s",
                provider.name,
            )

        raise NotificationUnavailableError(
            f"All notification providers failed. Last error: {last_error!r}",
            detail={"user_id": str(message.user_id), "kind": message.kind.value},
        )

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain outstanding sends and release provider resources."""
        await self.drain()
        for provider in self._providers:
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()

    async def _deliver_quietly(self, message: NotificationMessage) -> None:
        try:
            await self.deliver(message)
        except NotificationUnavailableError as e:
            logger.error(
                "Notification dropped: user=%s, kind=%s, error=%s",
                message.user_id,
                message.kind.value,
                e.message,
            )
