"""
site_deploy — S3 + CloudFront deployment engine for the static site export.

Uploads every file of the build output with a fixed Content-Type /
Cache-Control policy, then issues one optimised CloudFront invalidation.
"""

from site_deploy.config import DeployConfig, load_config
from site_deploy.engine import run_deployment, write_report
from site_deploy.exceptions import (
    BuildDirectoryMissing,
    ConfigError,
    DeployError,
    InvalidationFailed,
    StatusPollTimeout,
    UploadFailed,
)
from site_deploy.invalidation import invalidate, optimize_invalidation_paths, poll_invalidation
from site_deploy.models import CacheHeaders, CacheTier, DeploymentReport, UploadResult
from site_deploy.policy import classify_file, requires_invalidation
from site_deploy.uploader import upload_all

__all__ = [
    "BuildDirectoryMissing",
    "CacheHeaders",
    "CacheTier",
    "ConfigError",
    "DeployConfig",
    "DeployError",
    "DeploymentReport",
    "InvalidationFailed",
    "StatusPollTimeout",
    "UploadFailed",
    "UploadResult",
    "classify_file",
    "invalidate",
    "load_config",
    "optimize_invalidation_paths",
    "poll_invalidation",
    "requires_invalidation",
    "run_deployment",
    "upload_all",
    "write_report",
]
