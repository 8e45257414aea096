"""
site_deploy.config — Environment-driven deployment configuration.

Required:
    S3_BUCKET_NAME
Optional:
    CLOUDFRONT_DISTRIBUTION_ID      unset -> invalidation skipped with a warning
    AWS_REGION                      default us-east-1
    BUILD_DIR                       default out
    DEPLOY_ENVIRONMENT              default production
    ALWAYS_INVALIDATE_EXTENSIONS    comma separated, e.g. ".json,.js"
    INVALIDATION_WILDCARD_THRESHOLD default 20
    DEPLOY_MAX_ATTEMPTS             default 1
    DEPLOY_RETRY_BASE_DELAY         default 2.0 (seconds)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from site_deploy.exceptions import ConfigError
from site_deploy.invalidation import DEFAULT_WILDCARD_THRESHOLD
from site_deploy.policy import normalise_extensions
from site_deploy.retry import RetryPolicy

DEFAULT_REGION = "us-east-1"
DEFAULT_BUILD_DIR = "out"
DEFAULT_ENVIRONMENT = "production"
CLOUDFRONT_REGION = "us-east-1"


@dataclass(frozen=True)
class DeployConfig:
    bucket: str
    distribution_id: str | None = None
    region: str = DEFAULT_REGION
    build_dir: Path = Path(DEFAULT_BUILD_DIR)
    environment: str = DEFAULT_ENVIRONMENT
    always_invalidate: frozenset[str] = frozenset()
    wildcard_threshold: int = DEFAULT_WILDCARD_THRESHOLD
    retry: RetryPolicy = RetryPolicy()
    delete_stale: bool = True
    only_changed: bool = False
    wait_for_invalidation: bool = False

    def with_overrides(self, **changes: object) -> DeployConfig:
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _get(environ: Mapping[str, str], name: str) -> str:
    return environ.get(name, "").strip()


def _positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = _get(environ, name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}")
    return value


def _non_negative_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(environ, name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must be >= 0, got {value}")
    return value


def load_config(environ: Mapping[str, str] | None = None) -> DeployConfig:
    """Build a DeployConfig from environment variables; raise ConfigError on bad input."""
    env = os.environ if environ is None else environ

    bucket = _get(env, "S3_BUCKET_NAME")
    if not bucket:
        raise ConfigError("S3_BUCKET_NAME environment variable is required")

    return DeployConfig(
        bucket=bucket,
        distribution_id=_get(env, "CLOUDFRONT_DISTRIBUTION_ID") or None,
        region=_get(env, "AWS_REGION") or DEFAULT_REGION,
        build_dir=Path(_get(env, "BUILD_DIR") or DEFAULT_BUILD_DIR),
        environment=_get(env, "DEPLOY_ENVIRONMENT") or DEFAULT_ENVIRONMENT,
        always_invalidate=normalise_extensions(
            _get(env, "ALWAYS_INVALIDATE_EXTENSIONS").split(",")
        ),
        wildcard_threshold=_positive_int(
            env, "INVALIDATION_WILDCARD_THRESHOLD", DEFAULT_WILDCARD_THRESHOLD
        ),
        retry=RetryPolicy(
            max_attempts=_positive_int(env, "DEPLOY_MAX_ATTEMPTS", 1),
            base_delay_seconds=_non_negative_float(env, "DEPLOY_RETRY_BASE_DELAY", 2.0),
        ),
    )
