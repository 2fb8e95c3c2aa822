import logging
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from k8s_eagle.modules.config import ResolvedWatcher, ResolvedWebhook

from .models import ChangeEvent, EventType, NotificationPayload, build_payload
from .source import EventSource, WatchStreamError

logger = logging.getLogger(__name__)

# Replay full history, then tail live changes
INITIAL_RESOURCE_VERSION = "0"


class WatchState(str, Enum):
    """Lifecycle of a single watcher."""

    STARTING = "starting"
    STREAMING = "streaming"
    BACKOFF = "backoff"
    TERMINATED = "terminated"


class Dispatcher(Protocol):
    """What the watch loop needs from the webhook dispatcher."""

    def dispatch(self, payload: NotificationPayload, webhooks: Sequence[ResolvedWebhook]) -> Any:
        ...


class WatchLoop:
    """Consumes one watcher's event stream and hands notifications to the dispatcher."""

    def __init__(self, watcher: ResolvedWatcher, source: EventSource, dispatcher: Dispatcher):
        self.watcher = watcher
        self.source = source
        self.dispatcher = dispatcher
        self.state = WatchState.STARTING
        self.events_processed = 0

    @property
    def _log_context(self) -> dict:
        return {
            "watcher_name": self.watcher.name,
            "deployment_name": self.watcher.deployment_name,
            "namespace": self.watcher.namespace,
        }

    async def run(self) -> None:
        """
        Stream events until the stream ends or fails.

        Events are handled strictly in stream order. An in-band ERROR event
        is logged and skipped; a transport failure ends the loop.

        Raises:
            WatchStreamError: When the stream itself fails
        """
        self.state = WatchState.STARTING
        logger.info("starting watcher", extra=self._log_context)

        try:
            stream = self.source.watch(
                self.watcher.namespace,
                self.watcher.field_selector,
                INITIAL_RESOURCE_VERSION,
            )
            self.state = WatchState.STREAMING
            async for event in stream:
                self.handle_event(event)
        except WatchStreamError as e:
            logger.error("stream error", extra={**self._log_context, "error": str(e)})
            raise
        finally:
            self.state = WatchState.TERMINATED

        logger.info("watch stream ended", extra=self._log_context)

    def handle_event(self, event: ChangeEvent) -> Optional[NotificationPayload]:
        """
        Process one event.

        Returns:
            The payload handed to the dispatcher, or None for BOOKMARK/ERROR
        """
        if event.type == EventType.BOOKMARK:
            logger.debug("bookmark received", extra=self._log_context)
            return None

        if event.type == EventType.ERROR:
            logger.error("watch error", extra={**self._log_context, "error": event.error})
            return None

        deployment = event.deployment
        logger.info(
            f"deployment {event.type.value.lower()}",
            extra={
                "watcher_name": self.watcher.name,
                "deployment_name": deployment.name,
                "namespace": deployment.namespace,
                "event_type": event.type.value,
                "replicas": deployment.replicas,
                "ready_replicas": deployment.ready_replicas,
                "available_replicas": deployment.available_replicas,
            },
        )

        payload = build_payload(self.watcher.name, event.type, deployment)
        self.dispatcher.dispatch(payload, self.watcher.webhooks)
        self.events_processed += 1
        return payload
