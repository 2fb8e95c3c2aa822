import logging
import os
from types import MappingProxyType
from typing import List, Mapping

import yaml
from pydantic import ValidationError

from .models import ResolvedWatcher, ResolvedWebhook, WatchersConfig

logger = logging.getLogger(__name__)

SecretStore = Mapping[str, str]


class ConfigError(Exception):
    """Fatal configuration problem; the process must not start."""


class MissingSecretError(ConfigError):
    """A webhook references a secret key that is not in the secret store."""

    def __init__(self, key: str, watcher_name: str = ""):
        self.key = key
        self.watcher_name = watcher_name
        where = f" (watcher '{watcher_name}')" if watcher_name else ""
        super().__init__(f"Auth token '{key}' not found in secrets{where}")


def load_config(path: str) -> WatchersConfig:
    """
    Load and validate the watcher document.

    Args:
        path: Path to the YAML document

    Returns:
        Validated WatchersConfig

    Raises:
        ConfigError: If the file is missing, unparsable or fails validation
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")

    try:
        return WatchersConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def load_secrets(directory: str) -> SecretStore:
    """
    Build the secret store from a directory of files.

    Each regular file name is a key and its stripped content the value.
    Kubernetes secret volumes also contain "..data" style symlink entries;
    those are skipped.

    Args:
        directory: Secrets directory

    Returns:
        Read-only mapping of key to value (empty if the directory is missing)

    Raises:
        ConfigError: If a secret file cannot be read
    """
    secrets = {}

    if not os.path.isdir(directory):
        logger.warning(
            "secrets path does not exist",
            extra={"secrets_path": directory},
        )
        return MappingProxyType(secrets)

    for entry in sorted(os.scandir(directory), key=lambda e: e.name):
        if entry.name.startswith(".."):
            continue
        if not entry.is_file():
            continue
        try:
            with open(entry.path, "r", encoding="utf-8") as f:
                secrets[entry.name] = f.read().strip()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read secret file {entry.path}: {e}") from e

    return MappingProxyType(secrets)


def resolve_watchers(config: WatchersConfig, secrets: SecretStore) -> List[ResolvedWatcher]:
    """
    Replace every webhook's auth_token_key with the secret value.

    All or nothing: the first missing key aborts resolution.

    Raises:
        MissingSecretError: If any referenced key is absent
    """
    resolved: List[ResolvedWatcher] = []

    for watcher in config.watchers:
        webhooks = []
        for webhook in watcher.webhooks:
            if webhook.auth_token_key not in secrets:
                raise MissingSecretError(webhook.auth_token_key, watcher.name)
            webhooks.append(
                ResolvedWebhook(url=webhook.url, auth_token=secrets[webhook.auth_token_key])
            )

        resolved.append(
            ResolvedWatcher(
                name=watcher.name,
                deployment_name=watcher.deployment_name,
                namespace=watcher.namespace,
                webhooks=tuple(webhooks),
            )
        )

    return resolved
