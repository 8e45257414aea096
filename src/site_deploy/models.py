"""
site_deploy.models — Value types for a single deployment run.

Nothing here is persisted; every instance lives for one invocation of the
deploy pipeline:

    Upload(all files) -> Optimize(invalidation paths) -> Invalidate -> [Poll]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import PurePosixPath
from typing import Any

ONE_YEAR_SECONDS: int = 365 * 24 * 60 * 60
REVALIDATE_SECONDS: int = 5 * 60


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CacheTier(StrEnum):
    """Cache-Control policy tiers. The value is the header sent to S3."""

    IMMUTABLE = f"public, max-age={ONE_YEAR_SECONDS}, immutable"
    LONG_LIVED = f"public, max-age={ONE_YEAR_SECONDS}"
    REVALIDATED = f"public, max-age={REVALIDATE_SECONDS}, must-revalidate"
    NO_STORE = "no-cache, no-store, must-revalidate"


class InvalidationStatus(StrEnum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"


# ---------------------------------------------------------------------------
# Per-file types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileAsset:
    """A file in the build output tree, addressed by its forward-slash relative path."""

    path: str

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lower()

    @property
    def web_path(self) -> str:
        return "/" + self.path.lstrip("/")


@dataclass(frozen=True)
class CacheHeaders:
    content_type: str
    cache_control: str


@dataclass(frozen=True)
class UploadedObject:
    key: str
    size: int
    content_type: str
    cache_control: str


# ---------------------------------------------------------------------------
# Run results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildStats:
    file_count: int
    total_size: int


@dataclass
class UploadResult:
    uploaded: list[UploadedObject] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    invalidation_paths: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.uploaded)

    @property
    def total_bytes(self) -> int:
        return sum(obj.size for obj in self.uploaded)


@dataclass(frozen=True)
class InvalidationReceipt:
    invalidation_id: str
    status: str
    paths: tuple[str, ...]

    @property
    def completed(self) -> bool:
        return self.status == InvalidationStatus.COMPLETED


@dataclass
class DeploymentReport:
    deployment_id: str
    environment: str
    bucket: str
    distribution_id: str | None
    started_at: str
    finished_at: str = ""
    build: BuildStats | None = None
    uploaded_count: int = 0
    uploaded_bytes: int = 0
    skipped_count: int = 0
    deleted_keys: list[str] = field(default_factory=list)
    invalidation_paths: list[str] = field(default_factory=list)
    invalidation: InvalidationReceipt | None = None
    final_invalidation_status: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deploymentId": self.deployment_id,
            "environment": self.environment,
            "bucket": self.bucket,
            "distributionId": self.distribution_id,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "build": (
                {"fileCount": self.build.file_count, "totalSize": self.build.total_size}
                if self.build
                else None
            ),
            "uploadedCount": self.uploaded_count,
            "uploadedBytes": self.uploaded_bytes,
            "skippedCount": self.skipped_count,
            "deletedKeys": list(self.deleted_keys),
            "invalidationPaths": list(self.invalidation_paths),
            "invalidation": (
                {
                    "id": self.invalidation.invalidation_id,
                    "status": self.invalidation.status,
                    "paths": list(self.invalidation.paths),
                }
                if self.invalidation
                else None
            ),
            "finalInvalidationStatus": self.final_invalidation_status,
            "warnings": list(self.warnings),
        }
