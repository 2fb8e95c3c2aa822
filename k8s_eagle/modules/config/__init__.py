"""
Config Module - Black Box Interface

Purpose: Turn the watcher document and the secrets directory into ready-to-run watchers
Interface: load_config(), load_secrets(), resolve_watchers()
Hidden: YAML parsing, schema validation, secret file layout

Resolution is all-or-nothing: a single missing secret is fatal for the process.
"""

from .loader import (
    ConfigError,
    MissingSecretError,
    SecretStore,
    load_config,
    load_secrets,
    resolve_watchers,
)
from .models import (
    ResolvedWatcher,
    ResolvedWebhook,
    WatcherSpec,
    WatchersConfig,
    WebhookSpec,
)

__all__ = [
    "ConfigError",
    "MissingSecretError",
    "SecretStore",
    "load_config",
    "load_secrets",
    "resolve_watchers",
    "ResolvedWatcher",
    "ResolvedWebhook",
    "WatcherSpec",
    "WatchersConfig",
    "WebhookSpec",
]
