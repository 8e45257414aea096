"""
site_deploy.uploader — Walk the build output tree and PUT every file to S3.

Fail-fast: the first PutObject failure raises UploadFailed and aborts the
run. Re-running a deploy is idempotent, so no rollback is attempted.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from site_deploy.exceptions import BuildDirectoryMissing, UploadFailed
from site_deploy.models import (
    BuildStats,
    CacheHeaders,
    CacheTier,
    FileAsset,
    UploadedObject,
    UploadResult,
)
from site_deploy.policy import classify_file, requires_invalidation
from site_deploy.retry import NO_RETRY, RetryPolicy, call_with_retries

logger = Logger(service="site-deploy")

PROGRESS_EVERY = 10
HASH_METADATA_KEY = "file-hash"
EXPIRED = datetime(1970, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Build tree helpers
# ---------------------------------------------------------------------------


def iter_build_files(build_dir: Path) -> Iterator[tuple[Path, str]]:
    """Yield (local path, forward-slash key) for every regular file, sorted by key."""
    files = sorted((p for p in build_dir.rglob("*") if p.is_file()), key=lambda p: p.as_posix())
    for local_path in files:
        yield local_path, local_path.relative_to(build_dir).as_posix()


def require_build_dir(build_dir: Path) -> list[tuple[Path, str]]:
    if not build_dir.is_dir():
        raise BuildDirectoryMissing(str(build_dir))
    files = list(iter_build_files(build_dir))
    if not files:
        raise BuildDirectoryMissing(str(build_dir), reason="is empty")
    return files


def build_stats(build_dir: Path) -> BuildStats:
    files = require_build_dir(build_dir)
    return BuildStats(
        file_count=len(files),
        total_size=sum(local.stat().st_size for local, _ in files),
    )


def format_bytes(size: int) -> str:
    """1536 -> '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB", "TB")
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def file_hash(body: bytes) -> str:
    return hashlib.md5(body, usedforsecurity=False).hexdigest()


# ---------------------------------------------------------------------------
# S3 operations
# ---------------------------------------------------------------------------


def remote_hash(s3_client: Any, bucket: str, key: str) -> str | None:
    """Return the file-hash metadata of an existing object, or None when absent."""
    try:
        response = s3_client.head_object(Bucket=bucket, Key=key)
    except ClientError as exc:
        code = exc.response.get("Error", {}).get("Code", "")
        if code in {"404", "NoSuchKey", "NotFound"}:
            return None
        raise
    return response.get("Metadata", {}).get(HASH_METADATA_KEY)


def upload_file(
    s3_client: Any,
    *,
    bucket: str,
    key: str,
    body: bytes,
    deployment_id: str,
    retry: RetryPolicy = NO_RETRY,
) -> UploadedObject:
    headers = classify_file(key)
    params = {
        "Bucket": bucket,
        "Key": key,
        "Body": body,
        "ContentType": headers.content_type,
        "CacheControl": headers.cache_control,
        "Metadata": {
            "deployment-id": deployment_id,
            HASH_METADATA_KEY: file_hash(body),
            "uploaded-at": datetime.now(tz=UTC).isoformat(timespec="seconds"),
        },
    }
    if headers.cache_control == CacheTier.NO_STORE:
        params["Expires"] = EXPIRED
    try:
        call_with_retries(
            lambda: s3_client.put_object(**params),
            policy=retry,
            description=f"s3:PutObject {key}",
        )
    except (ClientError, BotoCoreError) as exc:
        logger.error("Upload failed", key=key, error=str(exc))
        raise UploadFailed(key, exc) from exc
    return UploadedObject(
        key=key,
        size=len(body),
        content_type=headers.content_type,
        cache_control=headers.cache_control,
    )


def upload_all(
    s3_client: Any,
    *,
    bucket: str,
    build_dir: Path,
    deployment_id: str,
    always_invalidate: frozenset[str] = frozenset(),
    only_changed: bool = False,
    retry: RetryPolicy = NO_RETRY,
) -> UploadResult:
    """Upload every file under `build_dir` and collect CDN paths needing invalidation.

    With only_changed=True, objects whose stored file-hash matches the local
    body are skipped and contribute no invalidation path.
    """
    files = require_build_dir(build_dir)
    logger.info("Uploading build output", bucket=bucket, file_count=len(files))

    result = UploadResult()
    for local_path, key in files:
        try:
            body = local_path.read_bytes()
        except OSError as exc:
            logger.error("Could not read build file", key=key, error=str(exc))
            raise UploadFailed(key, exc) from exc
        if only_changed:
            try:
                unchanged = remote_hash(s3_client, bucket, key) == file_hash(body)
            except (ClientError, BotoCoreError) as exc:
                raise UploadFailed(key, exc) from exc
            if unchanged:
                result.skipped.append(key)
                continue

        uploaded = upload_file(
            s3_client,
            bucket=bucket,
            key=key,
            body=body,
            deployment_id=deployment_id,
            retry=retry,
        )
        result.uploaded.append(uploaded)
        headers = CacheHeaders(uploaded.content_type, uploaded.cache_control)
        if requires_invalidation(key, headers, always_invalidate=always_invalidate):
            result.invalidation_paths.append(FileAsset(key).web_path)

        if result.count % PROGRESS_EVERY == 0:
            logger.info("Upload progress", uploaded=result.count, total=len(files))

    logger.info(
        "File upload completed",
        uploaded=result.count,
        skipped=len(result.skipped),
        total_bytes=result.total_bytes,
        invalidation_paths=len(result.invalidation_paths),
    )
    return result


def delete_stale_objects(s3_client: Any, *, bucket: str, keep_keys: set[str]) -> list[str]:
    """Delete objects in `bucket` with no counterpart in `keep_keys`; return deleted keys."""
    stale: list[str] = []
    paginator = s3_client.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket):
        for obj in page.get("Contents", []):
            if obj["Key"] not in keep_keys:
                stale.append(obj["Key"])

    # DeleteObjects accepts at most 1000 keys per request.
    for start in range(0, len(stale), 1000):
        chunk = stale[start : start + 1000]
        s3_client.delete_objects(
            Bucket=bucket,
            Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
        )
    if stale:
        logger.info("Deleted stale objects", bucket=bucket, count=len(stale))
    return stale
