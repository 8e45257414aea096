#!/usr/bin/env python3
"""
deploy_frontend.py — Deploy the static site export to S3 and invalidate CloudFront.

Uploads every file under the build directory with its Content-Type and
Cache-Control, removes objects no longer present locally, then submits one
optimised CloudFront invalidation (skipped when nothing cache-sensitive
changed or no distribution is configured).

Environment:
    S3_BUCKET_NAME              (required)
    CLOUDFRONT_DISTRIBUTION_ID  (optional)
    AWS_REGION                  (default us-east-1)

Exit codes:
    0  Deployed (invalidation failures are reported but do not fail the deploy)
    1  Configuration error, missing build output, or upload failure

Usage:
    uv run python scripts/deploy_frontend.py [--build-dir out] [--env production]
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import boto3

from site_deploy.config import CLOUDFRONT_REGION, load_config
from site_deploy.engine import run_deployment, write_report
from site_deploy.exceptions import DeployError
from site_deploy.uploader import format_bytes

logger = logging.getLogger("deploy_frontend")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deploy static site build output to S3")
    parser.add_argument("--build-dir", default=None, help="Build output directory (default out)")
    parser.add_argument("--env", default=None, help="Environment label for the deploy report")
    parser.add_argument(
        "--no-delete",
        action="store_true",
        help="Keep remote objects that no longer exist in the build output",
    )
    parser.add_argument(
        "--only-changed",
        action="store_true",
        help="Skip files whose stored file-hash metadata matches the local content",
    )
    parser.add_argument(
        "--wait",
        action="store_true",
        help="Poll the invalidation until Completed (informational only)",
    )
    parser.add_argument("--report", default=None, help="Write a JSON deployment report here")
    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> int:
    config = load_config().with_overrides(
        build_dir=Path(args.build_dir) if args.build_dir else None,
        environment=args.env,
        delete_stale=not args.no_delete,
        only_changed=args.only_changed,
        wait_for_invalidation=args.wait,
    )
    s3_client = boto3.client("s3", region_name=config.region)
    cloudfront_client = (
        boto3.client("cloudfront", region_name=CLOUDFRONT_REGION)
        if config.distribution_id
        else None
    )

    report = run_deployment(config, s3_client=s3_client, cloudfront_client=cloudfront_client)

    if args.report:
        write_report(report, Path(args.report))
        logger.info("Deployment report written to %s", args.report)

    build = report.build
    logger.info(
        "Deployment %s: %d files (%s) uploaded, %d skipped, %d deleted",
        report.deployment_id,
        report.uploaded_count,
        format_bytes(report.uploaded_bytes),
        report.skipped_count,
        len(report.deleted_keys),
    )
    if build:
        logger.info("Build output: %d files, %s", build.file_count, format_bytes(build.total_size))
    for warning in report.warnings:
        logger.warning(warning)

    print(f"DEPLOYMENT_ID={report.deployment_id}")
    if report.invalidation:
        print(f"INVALIDATION_ID={report.invalidation.invalidation_id}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    args = parse_args(argv)
    try:
        return run(args)
    except DeployError as exc:
        logger.error("Deployment failed: %s", exc)
        return 1
    except Exception as exc:
        logger.error("Deployment failed unexpectedly: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
