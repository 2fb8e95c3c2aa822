"""
Supervisor Module - Black Box Interface

Purpose: Run one isolated watch loop per resolved watcher
Interface: run(), stop(), status()
Hidden: Task management, failure isolation, restart backoff

A failing watcher is logged and never takes down its siblings.
"""

from .supervisor import RESTART_NEVER, RESTART_ON_FAILURE, Supervisor, WatcherStatus

__all__ = ["RESTART_NEVER", "RESTART_ON_FAILURE", "Supervisor", "WatcherStatus"]
