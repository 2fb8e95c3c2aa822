"""
Unit tests for Deployment snapshots, watch event parsing and notification payloads.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_deployment
from k8s_eagle.modules.watch import (
    DeploymentSnapshot,
    EventType,
    build_payload,
    parse_event,
)

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)

CONDITIONS = [
    {
        "type": "Available",
        "status": "True",
        "lastUpdateTime": "2024-05-01T12:00:00Z",
        "lastTransitionTime": "2024-05-01T12:00:00Z",
        "reason": "MinimumReplicasAvailable",
        "message": "Deployment has minimum availability.",
    }
]


class TestDeploymentSnapshot:
    """Test extraction of forwarded fields from a Deployment object."""

    def test_full_object(self):
        snapshot = DeploymentSnapshot.from_object(
            make_deployment(
                labels={"app": "api"},
                annotations={"deployment.kubernetes.io/revision": "4"},
                conditions=CONDITIONS,
            )
        )

        assert snapshot.name == "api"
        assert snapshot.namespace == "prod"
        assert snapshot.labels == {"app": "api"}
        assert snapshot.annotations == {"deployment.kubernetes.io/revision": "4"}
        assert snapshot.replicas == 3
        assert snapshot.ready_replicas == 2
        assert snapshot.available_replicas == 2
        assert snapshot.conditions == CONDITIONS

    def test_absent_fields_stay_none(self):
        snapshot = DeploymentSnapshot.from_object(
            make_deployment(replicas=None, ready_replicas=None, available_replicas=None)
        )

        assert snapshot.labels is None
        assert snapshot.annotations is None
        assert snapshot.replicas is None
        assert snapshot.ready_replicas is None
        assert snapshot.available_replicas is None
        assert snapshot.conditions is None

    def test_no_status(self):
        snapshot = DeploymentSnapshot.from_object(make_deployment(with_status=False))

        assert snapshot.replicas == 3
        assert snapshot.ready_replicas is None
        assert snapshot.conditions is None

    def test_empty_object(self):
        snapshot = DeploymentSnapshot.from_object({})
        assert snapshot == DeploymentSnapshot()


class TestParseEvent:
    """Test conversion of raw watch events."""

    @pytest.mark.parametrize("raw_type", ["ADDED", "MODIFIED", "DELETED"])
    def test_data_bearing_events(self, raw_type):
        event = parse_event({"type": raw_type, "object": make_deployment()})

        assert event.type == EventType(raw_type)
        assert event.deployment.name == "api"
        assert event.error is None

    def test_bookmark(self):
        event = parse_event({
            "type": "BOOKMARK",
            "object": {"kind": "Deployment", "metadata": {"resourceVersion": "999"}},
        })

        assert event.type == EventType.BOOKMARK
        assert event.deployment is None
        assert event.error is None

    def test_in_band_error(self):
        status = {
            "kind": "Status",
            "status": "Failure",
            "message": "too old resource version: 1 (2)",
            "reason": "Expired",
            "code": 410,
        }

        event = parse_event({"type": "ERROR", "object": status})

        assert event.type == EventType.ERROR
        assert event.error == status
        assert event.deployment is None

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            parse_event({"type": "SURPRISE", "object": {}})


class TestBuildPayload:
    """Test the notification wire shape."""

    def test_documented_shape(self):
        snapshot = DeploymentSnapshot.from_object(
            make_deployment(labels={"app": "api"}, conditions=CONDITIONS)
        )

        payload = build_payload("api-deploy", EventType.MODIFIED, snapshot, now=FIXED_NOW)

        assert payload.to_json() == {
            "watcher_name": "api-deploy",
            "event_type": "MODIFIED",
            "deployment": {
                "name": "api",
                "namespace": "prod",
                "labels": {"app": "api"},
                "annotations": None,
                "replicas": 3,
                "ready_replicas": 2,
                "available_replicas": 2,
                "conditions": CONDITIONS,
            },
            "timestamp": "2024-05-01T12:30:00+00:00",
        }

    def test_deterministic_for_same_input(self):
        snapshot = DeploymentSnapshot.from_object(make_deployment())

        first = build_payload("w", EventType.ADDED, snapshot, now=FIXED_NOW)
        second = build_payload("w", EventType.ADDED, snapshot, now=FIXED_NOW)

        assert json.dumps(first.to_json()) == json.dumps(second.to_json())

    def test_timestamp_normalized_to_utc(self):
        snapshot = DeploymentSnapshot.from_object(make_deployment())
        local = FIXED_NOW.astimezone(timezone(timedelta(hours=2)))

        payload = build_payload("w", EventType.DELETED, snapshot, now=local)

        assert payload.timestamp == "2024-05-01T12:30:00+00:00"

    def test_default_timestamp_is_current_utc(self):
        snapshot = DeploymentSnapshot.from_object(make_deployment())

        payload = build_payload("w", EventType.ADDED, snapshot)

        parsed = datetime.fromisoformat(payload.timestamp)
        assert parsed.utcoffset() == timedelta(0)
        assert abs(datetime.now(timezone.utc) - parsed) < timedelta(minutes=1)

    @pytest.mark.parametrize("event_type", [EventType.BOOKMARK, EventType.ERROR])
    def test_non_data_events_rejected(self, event_type):
        with pytest.raises(ValueError):
            build_payload("w", event_type, DeploymentSnapshot(), now=FIXED_NOW)
