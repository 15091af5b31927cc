"""
Pydantic configuration models.

Provider settings and the polling / retry budgets are validated when a
controller is built, so a bad value fails before any provider call.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Environment variables consulted, in order, for settings left out of the config dict.
_GCP_ENV_FALLBACKS: dict[str, tuple[str, ...]] = {
    "project_id": ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT"),
    "credentials_path": ("GOOGLE_APPLICATION_CREDENTIALS",),
    "zone": ("CLOUDSDK_COMPUTE_ZONE",),
}


class GCPConfig(BaseModel):
    """Settings for the Compute Engine bindings.

    Explicit values win; missing ones are read from the environment
    (see ``_GCP_ENV_FALLBACKS``). With neither credentials nor a key file
    the SDK falls back to Application Default Credentials.
    """

    model_config = ConfigDict(extra="forbid")

    project_id: str = Field(description="Project that owns the resources")
    credentials: Any | None = Field(default=None, description="google.auth credentials object")
    credentials_path: str | None = Field(default=None, description="Service account key file")
    zone: str = Field(default="us-central1-a", description="Zone for ids without one")

    @model_validator(mode="before")
    @classmethod
    def fill_from_environment(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name, env_vars in _GCP_ENV_FALLBACKS.items():
            if data.get(name):
                continue
            value = next((os.environ[v] for v in env_vars if os.environ.get(v)), None)
            if value is not None:
                data[name] = value
        if not data.get("project_id"):
            raise ValueError(
                "GCP project_id is required; pass it or set GOOGLE_CLOUD_PROJECT / GCLOUD_PROJECT"
            )
        return data

    @model_validator(mode="after")
    def load_key_file(self) -> GCPConfig:
        if self.credentials is not None or not self.credentials_path:
            return self
        key_file = Path(self.credentials_path)
        if not key_file.is_file():
            raise ValueError(f"Credentials file not found: {self.credentials_path}")
        from google.oauth2 import service_account  # lazy import

        self.credentials = service_account.Credentials.from_service_account_file(str(key_file))
        return self


class PollingPolicy(BaseModel):
    """Backoff budget for waiting on asynchronous provider operations."""

    model_config = ConfigDict(extra="forbid")

    initial_interval: float = Field(default=1.0, ge=0, description="First delay in seconds")
    multiplier: float = Field(default=1.5, ge=1.0, description="Growth factor per poll")
    max_interval: float = Field(default=30.0, ge=0, description="Cap on a single delay")
    timeout: float = Field(default=600.0, gt=0, description="Overall budget in seconds")

    @model_validator(mode="after")
    def check_interval_order(self) -> PollingPolicy:
        if self.initial_interval > self.max_interval:
            raise ValueError("initial_interval cannot exceed max_interval")
        return self

    def intervals(self) -> Iterator[float]:
        """Yield successive sleep intervals, growing geometrically up to the cap."""
        delay = self.initial_interval
        while True:
            yield delay
            delay = min(delay * self.multiplier, self.max_interval)


class RetryPolicy(BaseModel):
    """Retry budget for transient provider failures (5xx, throttling, network)."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, first one included")
    base_delay: float = Field(default=1.0, ge=0, description="Sleep before the first retry")
    max_delay: float = Field(default=30.0, ge=0, description="Cap on a single sleep")
    backoff_factor: float = Field(default=2.0, ge=1.0)

    def delays(self) -> Iterator[float]:
        """Yield the sleep before each retry."""
        delay = self.base_delay
        while True:
            yield min(delay, self.max_delay)
            delay *= self.backoff_factor


CONFIG_REGISTRY: dict[str, type[BaseModel]] = {
    "gcp": GCPConfig,
}


def validate_config(cloud_provider: str, config: dict) -> BaseModel:
    """Build the typed config model registered for *cloud_provider*.

    Raises:
        ValueError: If no model is registered for the provider.
        pydantic.ValidationError: If *config* does not validate.
    """
    try:
        model = CONFIG_REGISTRY[cloud_provider]
    except KeyError:
        raise ValueError(f"No config model registered for provider: {cloud_provider}") from None
    return model.model_validate(config)


__all__ = [
    "GCPConfig",
    "PollingPolicy",
    "RetryPolicy",
    "CONFIG_REGISTRY",
    "validate_config",
]
