"""
site_deploy.exceptions — Deployment failure taxonomy.

Fatal:      ConfigError, BuildDirectoryMissing, UploadFailed
Non-fatal:  InvalidationFailed, StatusPollTimeout (files are already live in S3;
            only CDN freshness is delayed)
"""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base class for deployment errors."""


class ConfigError(DeployError):
    """Raised when required deployment configuration is missing or malformed."""


class BuildDirectoryMissing(DeployError):
    """Raised before any upload when the build output is absent or empty."""

    def __init__(self, build_dir: str, *, reason: str = "does not exist") -> None:
        self.build_dir = build_dir
        self.reason = reason
        super().__init__(f"Build directory {build_dir!r} {reason}")


class UploadFailed(DeployError):
    """
    Raised when a single object upload fails. Aborts the whole run.

    Attributes:
        key:   S3 object key that failed.
        cause: Underlying botocore/OS error (also chained as __cause__).
    """

    def __init__(self, key: str, cause: BaseException) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Upload failed for {key!r}: {cause}")


class InvalidationFailed(DeployError):
    """Raised when CreateInvalidation is rejected (throttled, access denied, ...)."""

    def __init__(self, cause: BaseException, *, distribution_id: str = "") -> None:
        self.cause = cause
        self.distribution_id = distribution_id
        super().__init__(f"CloudFront invalidation failed for {distribution_id!r}: {cause}")


class StatusPollTimeout(DeployError):
    """Raised when polling exhausts its attempt budget before status is Completed."""

    def __init__(self, invalidation_id: str, *, attempts: int, last_status: str) -> None:
        self.invalidation_id = invalidation_id
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Invalidation {invalidation_id} still {last_status} after {attempts} polls"
        )
