from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from s3heartbeat.errors import ConfigError

DEFAULT_REGION = "us-west-2"
DEFAULT_INTERVAL_SECONDS = 60.0
DEFAULT_BODY = b"Testing with Kotlin SDK"


def require_env(var_name: str, env: Mapping[str, str] | None = None) -> str:
    env = os.environ if env is None else env
    value = env.get(var_name)
    if value is None or not value.strip():
        raise ConfigError(f"Environment variable '{var_name}' is required but not set.")
    return value.strip()


@dataclass(frozen=True)
class EndpointConfig:
    endpoint_url: str | None = None
    accelerate: bool = False
    region: str = DEFAULT_REGION

    def __post_init__(self):
        if not self.region or not self.region.strip():
            raise ConfigError("EndpointConfig.region must be a non-empty string.")


@dataclass(frozen=True)
class HeartbeatConfig:
    bucket_name: str
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    body: bytes = DEFAULT_BODY

    def __post_init__(self):
        if not self.bucket_name or not self.bucket_name.strip():
            raise ConfigError("HeartbeatConfig.bucket_name must be a non-empty string.")
        if self.interval_seconds <= 0:
            raise ConfigError(f"HeartbeatConfig.interval_seconds must be > 0, got: {self.interval_seconds}")


def endpoint_config_from_env(env: Mapping[str, str] | None = None) -> EndpointConfig:
    env = os.environ if env is None else env
    region = env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION
    return EndpointConfig(
        endpoint_url=env.get("AWS_S3_ENDPOINT") or None,
        # only the exact literal turns acceleration on
        accelerate=env.get("S3_ACCELERATE") == "TRUE",
        region=region,
    )


def heartbeat_config_from_env(env: Mapping[str, str] | None = None) -> HeartbeatConfig:
    env = os.environ if env is None else env
    bucket_name = require_env("AWS_S3_BUCKET_NAME", env)
    raw = env.get("HEARTBEAT_INTERVAL_SECONDS")
    if not raw:
        return HeartbeatConfig(bucket_name=bucket_name)
    try:
        interval = float(raw)
    except ValueError as exc:
        raise ConfigError(f"HEARTBEAT_INTERVAL_SECONDS must be a number, got: {raw!r}") from exc
    return HeartbeatConfig(bucket_name=bucket_name, interval_seconds=interval)
