"""
Watch Module - Black Box Interface

Purpose: Follow one Deployment's change stream and turn events into notifications
Interface: WatchLoop.run(), EventSource.watch(), build_payload()
Hidden: Kubernetes client, stream threading, event parsing

Can be replaced with any source that yields ChangeEvent objects.
"""

from .loop import Dispatcher, WatchLoop, WatchState
from .models import (
    ChangeEvent,
    DeploymentSnapshot,
    EventType,
    NotificationPayload,
    build_payload,
)
from .source import EventSource, KubernetesEventSource, WatchStreamError, parse_event

__all__ = [
    "ChangeEvent",
    "DeploymentSnapshot",
    "Dispatcher",
    "EventSource",
    "EventType",
    "KubernetesEventSource",
    "NotificationPayload",
    "WatchLoop",
    "WatchState",
    "WatchStreamError",
    "build_payload",
    "parse_event",
]
