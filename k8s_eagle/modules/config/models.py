"""
Watcher configuration models.

WatcherSpec/WebhookSpec mirror the user-authored YAML document.
ResolvedWatcher/ResolvedWebhook are the ready-to-run forms with every
secret reference replaced by its value.
"""

from dataclasses import dataclass, field
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WebhookSpec(BaseModel):
    """A webhook destination; auth_token_key names a secret, not its value."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    url: str = Field(..., min_length=1, description="Destination URL")
    auth_token_key: str = Field(
        ..., alias="authTokenKey", min_length=1, description="Secret key holding the bearer token"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only HTTP(S) destinations can receive a POST."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"webhook url must be http(s): {v}")
        return v


class WatcherSpec(BaseModel):
    """Binding between one Deployment and its webhook destinations."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str = Field(..., min_length=1)
    deployment_name: str = Field(..., alias="deploymentName", min_length=1)
    namespace: str = Field(..., min_length=1)
    webhooks: List[WebhookSpec] = Field(default_factory=list)


class WatchersConfig(BaseModel):
    """Top-level watcher document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    watchers: List[WatcherSpec] = Field(default_factory=list)

    @field_validator("watchers")
    @classmethod
    def validate_unique_names(cls, v: List[WatcherSpec]) -> List[WatcherSpec]:
        """Watcher names identify log lines and status entries, so they must be unique."""
        seen = set()
        for watcher in v:
            if watcher.name in seen:
                raise ValueError(f"duplicate watcher name: {watcher.name}")
            seen.add(watcher.name)
        return v


@dataclass(frozen=True)
class ResolvedWebhook:
    url: str
    auth_token: str = field(repr=False)


@dataclass(frozen=True)
class ResolvedWatcher:
    name: str
    deployment_name: str
    namespace: str
    webhooks: Tuple[ResolvedWebhook, ...] = ()

    @property
    def field_selector(self) -> str:
        return f"metadata.name={self.deployment_name}"
