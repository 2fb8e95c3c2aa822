"""
Deployment watch stream capability.

The watch loop only depends on the EventSource protocol. The Kubernetes
implementation reads the API server's watch response line by line in a
daemon thread and hands parsed events to the event loop through a queue.
"""

import asyncio
import json
import logging
import threading
from typing import Any, AsyncIterator, Dict, Optional, Protocol

from kubernetes import client, config
from kubernetes.watch.watch import iter_resp_lines

from .models import ChangeEvent, DeploymentSnapshot, EventType

logger = logging.getLogger(__name__)

_END = object()


class WatchStreamError(Exception):
    """The watch stream itself failed (as opposed to an in-band ERROR event)."""


class EventSource(Protocol):
    """Protocol for anything that yields Deployment change events."""

    def watch(
        self, namespace: str, field_selector: str, resource_version: str = "0"
    ) -> AsyncIterator[ChangeEvent]:
        """
        Subscribe to change events.

        Yields:
            ChangeEvent in stream order

        Raises:
            WatchStreamError: On transport failure
        """
        ...


def parse_event(data: Dict[str, Any]) -> ChangeEvent:
    """Convert one raw watch event ({"type": ..., "object": ...}) to a ChangeEvent."""
    event_type = EventType(data["type"])
    obj = data.get("object") or {}

    if event_type == EventType.ERROR:
        return ChangeEvent(type=event_type, error=obj)
    if event_type == EventType.BOOKMARK:
        return ChangeEvent(type=event_type)
    return ChangeEvent(type=event_type, deployment=DeploymentSnapshot.from_object(obj))


class KubernetesEventSource:
    """EventSource backed by the AppsV1 Deployment watch API."""

    def __init__(self, apps_api: Optional[client.AppsV1Api] = None):
        self.apps_api = apps_api or client.AppsV1Api()

    @classmethod
    def from_environment(cls) -> "KubernetesEventSource":
        """Use the in-cluster service account, falling back to kubeconfig."""
        try:
            config.load_incluster_config()
            logger.info("Using in-cluster Kubernetes configuration")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Using kubeconfig Kubernetes configuration")
        return cls(client.AppsV1Api())

    async def watch(
        self, namespace: str, field_selector: str, resource_version: str = "0"
    ) -> AsyncIterator[ChangeEvent]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        stop = threading.Event()

        reader = threading.Thread(
            target=self._read_stream,
            args=(loop, queue, stop, namespace, field_selector, resource_version),
            name=f"watch-{namespace}-{field_selector}",
            daemon=True,
        )
        reader.start()

        try:
            while True:
                item = await queue.get()
                if item is _END:
                    return
                if isinstance(item, WatchStreamError):
                    raise item
                yield item
        finally:
            stop.set()

    def _read_stream(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue,
        stop: threading.Event,
        namespace: str,
        field_selector: str,
        resource_version: str,
    ) -> None:
        """Reader thread body: blocking reads, results posted to the loop."""

        def put(item) -> None:
            if not stop.is_set() and not loop.is_closed():
                loop.call_soon_threadsafe(queue.put_nowait, item)

        response = None
        error = None
        try:
            response = self.apps_api.list_namespaced_deployment(
                namespace,
                field_selector=field_selector,
                resource_version=resource_version,
                allow_watch_bookmarks=True,
                watch=True,
                _preload_content=False,
            )
            for line in iter_resp_lines(response):
                if stop.is_set():
                    break
                if not line.strip():
                    continue
                put(parse_event(json.loads(line)))
        except Exception as e:  # noqa: BLE001 - every failure here ends the stream
            error = WatchStreamError(f"{type(e).__name__}: {e}")
            error.__cause__ = e
        finally:
            if response is not None:
                response.release_conn()

        put(error if error is not None else _END)
