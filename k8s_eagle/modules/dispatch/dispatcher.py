import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

import httpx

from k8s_eagle.modules.config import ResolvedWebhook
from k8s_eagle.modules.watch import NotificationPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one POST to one destination."""

    url: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class WebhookDispatcher:
    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        max_in_flight: int = 64,
        timeout: float = 10.0,
    ):
        """
        Initialize webhook dispatcher.

        Args:
            http_client: Shared async HTTP client (created and owned if omitted)
            max_in_flight: Max concurrent POSTs across all watchers
            timeout: Per-request timeout in seconds for an owned client
        """
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.max_in_flight = max_in_flight
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of event groups still being delivered."""
        return len(self._pending)

    def dispatch(
        self, payload: NotificationPayload, webhooks: Sequence[ResolvedWebhook]
    ) -> Optional[asyncio.Task]:
        """
        Hand off a notification without waiting for delivery.

        Args:
            payload: Notification shared by all destinations
            webhooks: Destinations for this watcher

        Returns:
            Task delivering the whole group, or None if there are no destinations
        """
        if not webhooks:
            return None

        task = asyncio.create_task(
            self.deliver(payload, webhooks),
            name=f"dispatch-{payload.watcher_name}-{payload.event_type.value}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(
        self, payload: NotificationPayload, webhooks: Sequence[ResolvedWebhook]
    ) -> List[DeliveryResult]:
        """
        Deliver a notification to every destination concurrently.

        Every destination is attempted; one failing never blocks, delays
        or cancels the others. Failures are logged, never raised.

        Returns:
            One DeliveryResult per destination, in destination order
        """
        if not webhooks:
            return []

        body = payload.to_json()
        return list(
            await asyncio.gather(*(self._post(payload, body, webhook) for webhook in webhooks))
        )

    async def _post(
        self, payload: NotificationPayload, body: dict, webhook: ResolvedWebhook
    ) -> DeliveryResult:
        headers = {
            "Authorization": f"Bearer {webhook.auth_token}",
            "Content-Type": "application/json",
        }
        context = {
            "watcher_name": payload.watcher_name,
            "event_type": payload.event_type.value,
            "webhook_url": webhook.url,
        }

        try:
            async with self._semaphore:
                response = await self.http_client.post(webhook.url, json=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = str(e) or type(e).__name__
            logger.error("failed to send webhook", extra={**context, "error": error})
            return DeliveryResult(url=webhook.url, ok=False, error=error)
        except Exception as e:  # noqa: BLE001
            error = f"{type(e).__name__}: {e}"
            logger.error("failed to send webhook", extra={**context, "error": error}, exc_info=True)
            return DeliveryResult(url=webhook.url, ok=False, error=error)

        if response.is_success:
            logger.info("webhook sent successfully", extra=context)
            return DeliveryResult(url=webhook.url, ok=True, status_code=response.status_code)

        logger.warning(
            "webhook failed",
            extra={**context, "status": response.status_code, "response_text": response.text},
        )
        return DeliveryResult(url=webhook.url, ok=False, status_code=response.status_code)

    async def drain(self, timeout: float = 5.0) -> int:
        """
        Wait for outstanding deliveries, cancelling whatever is left after timeout.

        Returns:
            Number of event groups that were cancelled
        """
        if not self._pending:
            return 0

        pending = list(self._pending)
        _, still_running = await asyncio.wait(pending, timeout=timeout)

        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning(
                "abandoned in-flight webhook deliveries",
                extra={"abandoned": len(still_running)},
            )
        return len(still_running)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
