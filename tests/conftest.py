"""
Shared pytest fixtures for k8s-eagle tests.

This module provides common fixtures including:
- Deployment object builders in Kubernetes API JSON form
- FakeEventSource: scripted watch streams without a cluster
- RecordingDispatcher: captures handed-off notifications
- Config/secret file helpers
"""

import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from k8s_eagle.modules.config import ResolvedWatcher, ResolvedWebhook
from k8s_eagle.modules.watch import ChangeEvent, DeploymentSnapshot, EventType, WatchStreamError


# =============================================================================
# Deployment builders
# =============================================================================

def make_deployment(
    name: str = "api",
    namespace: str = "prod",
    replicas: Optional[int] = 3,
    ready_replicas: Optional[int] = 2,
    available_replicas: Optional[int] = 2,
    labels: Optional[Dict[str, str]] = None,
    annotations: Optional[Dict[str, str]] = None,
    conditions: Optional[List[Dict[str, Any]]] = None,
    with_status: bool = True,
) -> Dict[str, Any]:
    """Build a Deployment object as the API server returns it."""
    obj: Dict[str, Any] = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": "12345",
        },
        "spec": {"replicas": replicas} if replicas is not None else {},
    }
    if labels is not None:
        obj["metadata"]["labels"] = labels
    if annotations is not None:
        obj["metadata"]["annotations"] = annotations
    if with_status:
        status: Dict[str, Any] = {}
        if ready_replicas is not None:
            status["readyReplicas"] = ready_replicas
        if available_replicas is not None:
            status["availableReplicas"] = available_replicas
        if conditions is not None:
            status["conditions"] = conditions
        obj["status"] = status
    return obj


def make_event(event_type: EventType, **kwargs) -> ChangeEvent:
    """Build a data-bearing ChangeEvent."""
    return ChangeEvent(
        type=event_type,
        deployment=DeploymentSnapshot.from_object(make_deployment(**kwargs)),
    )


BOOKMARK = ChangeEvent(type=EventType.BOOKMARK)


def watch_line(event_type: str, obj: Dict[str, Any]) -> bytes:
    """One line of a raw watch response body."""
    return (json.dumps({"type": event_type, "object": obj}) + "\n").encode("utf-8")


# =============================================================================
# Fakes
# =============================================================================

class FakeEventSource:
    """
    EventSource that replays scripted streams.

    Each script is a list of ChangeEvent or Exception items; an Exception
    item is raised at that point in the stream. Scripts are keyed by
    namespace/field selector, and each subscription consumes the next script
    for its key, so restarts can be scripted too.

    Usage:
        source = FakeEventSource()
        source.script("prod", "metadata.name=api", [event, WatchStreamError("gone")])
    """

    def __init__(self):
        self._scripts: Dict[tuple, List[List[Any]]] = {}
        self.subscriptions: List[tuple] = []
        self.hold_open = False

    def script(self, namespace: str, field_selector: str, items: List[Any]) -> "FakeEventSource":
        self._scripts.setdefault((namespace, field_selector), []).append(items)
        return self

    async def watch(self, namespace: str, field_selector: str, resource_version: str = "0"):
        self.subscriptions.append((namespace, field_selector, resource_version))
        scripts = self._scripts.get((namespace, field_selector), [])
        items = scripts.pop(0) if scripts else []
        for item in items:
            await asyncio.sleep(0)
            if isinstance(item, Exception):
                raise item
            yield item
        if self.hold_open:
            await asyncio.Event().wait()


class RecordingDispatcher:
    """Dispatcher that records what the watch loop hands off."""

    def __init__(self):
        self.calls: List[tuple] = []

    def dispatch(self, payload, webhooks):
        self.calls.append((payload, tuple(webhooks)))
        return None


class FakeWatchResponse:
    """Stand-in for the urllib3 response returned with _preload_content=False."""

    def __init__(self, chunks: List[bytes], error: Optional[Exception] = None):
        self.chunks = chunks
        self.error = error
        self.released = False

    def stream(self, amt=None, decode_content=False):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def read_chunked(self, amt=None, decode_content=False):
        return self.stream(amt, decode_content)

    def release_conn(self):
        self.released = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def api_watcher() -> ResolvedWatcher:
    """The api-deploy watcher from the reference scenario."""
    return ResolvedWatcher(
        name="api-deploy",
        deployment_name="api",
        namespace="prod",
        webhooks=(ResolvedWebhook(url="https://hooks.example/api", auth_token="abc123"),),
    )


@pytest.fixture
def fake_source() -> FakeEventSource:
    return FakeEventSource()


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def write_config(tmp_path):
    """Write a watcher document and return its path."""

    def _write(content: str) -> str:
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def secrets_dir(tmp_path):
    """A secrets directory containing api-token = abc123."""
    directory = tmp_path / "secrets"
    directory.mkdir()
    (directory / "api-token").write_text("abc123\n", encoding="utf-8")
    return directory
