"""
Watch event and notification models.

These models define the data passed from the watch stream to the
webhook dispatcher.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class EventType(str, Enum):
    """Kubernetes watch event types."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"

    @property
    def carries_object(self) -> bool:
        return self in (EventType.ADDED, EventType.MODIFIED, EventType.DELETED)


class DeploymentSnapshot(BaseModel):
    """The Deployment fields forwarded to webhooks."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: Optional[Dict[str, str]] = None
    annotations: Optional[Dict[str, str]] = None
    replicas: Optional[int] = None
    ready_replicas: Optional[int] = None
    available_replicas: Optional[int] = None
    conditions: Optional[List[Dict[str, Any]]] = None

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "DeploymentSnapshot":
        """Extract a snapshot from a raw Deployment object (API JSON form)."""
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status")

        return cls(
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            labels=metadata.get("labels"),
            annotations=metadata.get("annotations"),
            replicas=spec.get("replicas"),
            ready_replicas=status.get("readyReplicas") if status else None,
            available_replicas=status.get("availableReplicas") if status else None,
            conditions=status.get("conditions") if status else None,
        )


@dataclass(frozen=True)
class ChangeEvent:
    """One event from a watch stream.

    ADDED/MODIFIED/DELETED carry a deployment snapshot, ERROR carries the
    in-band status object, BOOKMARK carries nothing.
    """

    type: EventType
    deployment: Optional[DeploymentSnapshot] = None
    error: Optional[Dict[str, Any]] = None


class NotificationPayload(BaseModel):
    """Wire shape POSTed to every webhook of a watcher."""

    model_config = ConfigDict(frozen=True)

    watcher_name: str
    event_type: EventType
    deployment: DeploymentSnapshot
    timestamp: str

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def build_payload(
    watcher_name: str,
    event_type: EventType,
    deployment: DeploymentSnapshot,
    now: Optional[datetime] = None,
) -> NotificationPayload:
    """
    Build the notification for one data-bearing event.

    Args:
        watcher_name: Name of the watcher that observed the event
        event_type: ADDED, MODIFIED or DELETED
        deployment: Snapshot carried by the event
        now: Timestamp override (defaults to current UTC time)

    Returns:
        NotificationPayload shared across all destinations
    """
    if not event_type.carries_object:
        raise ValueError(f"{event_type.value} events do not produce notifications")

    timestamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    return NotificationPayload(
        watcher_name=watcher_name,
        event_type=event_type,
        deployment=deployment,
        timestamp=timestamp.isoformat(),
    )
