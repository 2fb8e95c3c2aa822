"""
Health Module - Black Box Interface

Purpose: Expose liveness, per-watcher status and metrics over HTTP
Interface: create_health_app(), build_health_server()
Hidden: Web framework and server details
"""

from .app import build_health_server, create_health_app

__all__ = ["build_health_server", "create_health_app"]
