"""
Dispatch Module - Black Box Interface

Purpose: Deliver one notification to many webhooks concurrently
Interface: dispatch(), deliver(), drain(), aclose()
Hidden: HTTP client, concurrency cap, per-destination error handling

Each destination is isolated: failures are logged, never retried, never raised.
"""

from .dispatcher import DeliveryResult, WebhookDispatcher

__all__ = ["DeliveryResult", "WebhookDispatcher"]
