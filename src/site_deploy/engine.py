"""
site_deploy.engine — The deploy pipeline.

    Upload(all files) -> [Delete stale] -> Optimize(paths) -> Invalidate -> [Poll]

Upload errors are fatal. Stale-object cleanup, invalidation and status
polling only affect cache freshness, so their failures are logged and
recorded as report warnings without failing the deploy.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from site_deploy.config import DeployConfig
from site_deploy.exceptions import InvalidationFailed, StatusPollTimeout
from site_deploy.invalidation import invalidate, optimize_invalidation_paths, poll_invalidation
from site_deploy.models import DeploymentReport, FileAsset
from site_deploy.uploader import build_stats, delete_stale_objects, iter_build_files, upload_all

logger = Logger(service="site-deploy")


def new_deployment_id() -> str:
    return f"deploy-{int(time.time() * 1000)}"


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="seconds")


def run_deployment(
    config: DeployConfig,
    *,
    s3_client: Any,
    cloudfront_client: Any | None,
    deployment_id: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> DeploymentReport:
    """Deploy `config.build_dir` to `config.bucket` and invalidate changed CDN paths.

    Raises BuildDirectoryMissing or UploadFailed; every other failure is
    captured in the returned report.
    """
    deployment_id = deployment_id or new_deployment_id()
    report = DeploymentReport(
        deployment_id=deployment_id,
        environment=config.environment,
        bucket=config.bucket,
        distribution_id=config.distribution_id,
        started_at=utc_now_iso(),
    )
    logger.info(
        "Starting deployment",
        deployment_id=deployment_id,
        environment=config.environment,
        bucket=config.bucket,
        distribution_id=config.distribution_id or "not-configured",
        build_dir=str(config.build_dir),
    )

    report.build = build_stats(config.build_dir)
    result = upload_all(
        s3_client,
        bucket=config.bucket,
        build_dir=config.build_dir,
        deployment_id=deployment_id,
        always_invalidate=config.always_invalidate,
        only_changed=config.only_changed,
        retry=config.retry,
    )
    report.uploaded_count = result.count
    report.uploaded_bytes = result.total_bytes
    report.skipped_count = len(result.skipped)

    if config.delete_stale:
        _delete_stale(config, s3_client, report)

    # Removed objects may still be cached at the edge.
    deleted_paths = [FileAsset(key).web_path for key in report.deleted_keys]
    candidates = result.invalidation_paths + deleted_paths
    paths = optimize_invalidation_paths(candidates, threshold=config.wildcard_threshold)
    report.invalidation_paths = paths
    _invalidate(config, cloudfront_client, paths, report, sleep=sleep)

    report.finished_at = utc_now_iso()
    logger.info(
        "Deployment completed",
        deployment_id=deployment_id,
        uploaded=report.uploaded_count,
        skipped=report.skipped_count,
        deleted=len(report.deleted_keys),
        invalidation_paths=len(paths),
        warnings=len(report.warnings),
    )
    return report


def _delete_stale(config: DeployConfig, s3_client: Any, report: DeploymentReport) -> None:
    keep = {key for _, key in iter_build_files(config.build_dir)}
    try:
        report.deleted_keys = delete_stale_objects(s3_client, bucket=config.bucket, keep_keys=keep)
    except (ClientError, BotoCoreError) as exc:
        logger.error("Stale object cleanup failed", bucket=config.bucket, error=str(exc))
        report.warnings.append(f"cleanup failed: {exc}")


def _invalidate(
    config: DeployConfig,
    cloudfront_client: Any | None,
    paths: list[str],
    report: DeploymentReport,
    *,
    sleep: Callable[[float], None],
) -> None:
    if not config.distribution_id:
        logger.warning("CLOUDFRONT_DISTRIBUTION_ID not set; skipping cache invalidation")
        if paths:
            report.warnings.append("invalidation skipped: no distribution configured")
        return
    if cloudfront_client is None:
        logger.warning(
            "No CloudFront client; skipping cache invalidation",
            distribution_id=config.distribution_id,
        )
        if paths:
            report.warnings.append("invalidation skipped: no CloudFront client")
        return

    try:
        receipt = invalidate(
            cloudfront_client,
            config.distribution_id,
            paths,
            caller_reference=f"{report.deployment_id}-{int(time.time() * 1000)}",
            retry=config.retry,
        )
    except InvalidationFailed as exc:
        logger.error(
            "Cache invalidation failed; deployment succeeded but CDN may serve stale content",
            distribution_id=config.distribution_id,
            error=str(exc.cause),
        )
        report.warnings.append(str(exc))
        return

    report.invalidation = receipt
    if receipt is None or not config.wait_for_invalidation:
        return
    if receipt.completed:
        report.final_invalidation_status = receipt.status
        return

    try:
        report.final_invalidation_status = poll_invalidation(
            cloudfront_client,
            config.distribution_id,
            receipt.invalidation_id,
            sleep=sleep,
        )
    except StatusPollTimeout as exc:
        logger.warning("Stopped polling invalidation status", error=str(exc))
        report.final_invalidation_status = exc.last_status
        report.warnings.append(str(exc))
    except (ClientError, BotoCoreError) as exc:
        logger.warning("Invalidation status check failed", error=str(exc))
        report.warnings.append(f"status check failed: {exc}")


def write_report(report: DeploymentReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
