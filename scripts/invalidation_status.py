#!/usr/bin/env python3
"""
invalidation_status.py — Poll a CloudFront invalidation until it completes.

Purely informational: a deploy is already live once its files are in S3.
Stops after --max-polls checks (default 20, 30s apart).

Exit codes:
    0  Completed, or still in progress when the poll budget ran out
    1  Missing distribution id or CloudFront API error

Usage:
    uv run python scripts/invalidation_status.py <invalidation_id> \
        [--distribution-id EXXXX] [--max-polls 20] [--interval 30]
"""

from __future__ import annotations

import argparse
import logging
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from site_deploy.config import CLOUDFRONT_REGION
from site_deploy.exceptions import StatusPollTimeout
from site_deploy.invalidation import (
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    poll_invalidation,
)

logger = logging.getLogger("invalidation_status")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll a CloudFront invalidation status")
    parser.add_argument("invalidation_id", help="Invalidation ID returned by CreateInvalidation")
    parser.add_argument(
        "--distribution-id",
        default=os.environ.get("CLOUDFRONT_DISTRIBUTION_ID", ""),
        help="CloudFront distribution (default $CLOUDFRONT_DISTRIBUTION_ID)",
    )
    parser.add_argument("--max-polls", type=_positive_int, default=DEFAULT_MAX_POLLS)
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        help="Seconds between polls",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace, *, cloudfront_client: object | None = None) -> int:
    if not args.distribution_id:
        logger.error("No distribution id: pass --distribution-id or set CLOUDFRONT_DISTRIBUTION_ID")
        return 1
    client = cloudfront_client or boto3.client("cloudfront", region_name=CLOUDFRONT_REGION)

    try:
        status = poll_invalidation(
            client,
            args.distribution_id,
            args.invalidation_id,
            max_polls=args.max_polls,
            interval_seconds=args.interval,
        )
    except StatusPollTimeout as exc:
        logger.warning("%s; CloudFront will finish on its own", exc)
        print(f"INVALIDATION_STATUS={exc.last_status}")
        return 0
    except (ClientError, BotoCoreError) as exc:
        logger.error("Status check failed: %s", exc)
        return 1

    logger.info("Invalidation %s completed", args.invalidation_id)
    print(f"INVALIDATION_STATUS={status}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    return run(parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
