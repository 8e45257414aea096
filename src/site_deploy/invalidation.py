"""
site_deploy.invalidation — CloudFront invalidation path optimisation and submission.

Invalidations are billed per path. When more than `threshold` distinct image
paths under /images/ are pending, they collapse into the single wildcard
/images/*. Non-image paths are never wildcarded: a broad HTML wildcard would
purge unrelated routes.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterable
from typing import Any

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from site_deploy.exceptions import InvalidationFailed, StatusPollTimeout
from site_deploy.models import InvalidationReceipt, InvalidationStatus
from site_deploy.retry import NO_RETRY, RetryPolicy, call_with_retries

logger = Logger(service="site-deploy")

DEFAULT_WILDCARD_THRESHOLD = 20
IMAGES_WILDCARD = "/images/*"
DEFAULT_MAX_POLLS = 20
DEFAULT_POLL_INTERVAL_SECONDS = 30

_IMAGE_PATH_RE = re.compile(r"^/images/.*\.(webp|jpg|jpeg|png|gif|svg|ico|avif)$", re.IGNORECASE)


def is_collapsible_image_path(path: str) -> bool:
    return bool(_IMAGE_PATH_RE.match(path))


def optimize_invalidation_paths(
    paths: Iterable[str],
    *,
    threshold: int = DEFAULT_WILDCARD_THRESHOLD,
) -> list[str]:
    """Deduplicate `paths` and collapse image paths to /images/* above `threshold`.

    First-seen order is kept; the wildcard, when used, is appended last.
    """
    unique = list(dict.fromkeys(paths))
    image_paths = [p for p in unique if is_collapsible_image_path(p)]
    if len(image_paths) <= threshold:
        return unique

    optimized = [p for p in unique if not is_collapsible_image_path(p)]
    if IMAGES_WILDCARD not in optimized:
        optimized.append(IMAGES_WILDCARD)
    logger.info(
        "Collapsed image invalidation paths into wildcard",
        image_paths=len(image_paths),
        threshold=threshold,
        wildcard=IMAGES_WILDCARD,
    )
    return optimized


def invalidate(
    cloudfront_client: Any,
    distribution_id: str,
    paths: list[str],
    *,
    caller_reference: str | None = None,
    retry: RetryPolicy = NO_RETRY,
) -> InvalidationReceipt | None:
    """Submit one CreateInvalidation request; return None without calling AWS when
    `paths` is empty.

    Does not wait for completion. Raises InvalidationFailed on rejection.
    """
    if not paths:
        logger.info("No cache-sensitive changes; skipping invalidation")
        return None

    reference = caller_reference or f"invalidation-{int(time.time() * 1000)}"
    batch = {
        "Paths": {"Quantity": len(paths), "Items": list(paths)},
        "CallerReference": reference,
    }
    try:
        response = call_with_retries(
            lambda: cloudfront_client.create_invalidation(
                DistributionId=distribution_id, InvalidationBatch=batch
            ),
            policy=retry,
            description="cloudfront:CreateInvalidation",
        )
    except (ClientError, BotoCoreError) as exc:
        raise InvalidationFailed(exc, distribution_id=distribution_id) from exc

    invalidation = response["Invalidation"]
    receipt = InvalidationReceipt(
        invalidation_id=invalidation["Id"],
        status=invalidation.get("Status", InvalidationStatus.IN_PROGRESS),
        paths=tuple(paths),
    )
    logger.info(
        "Cache invalidation started",
        distribution_id=distribution_id,
        invalidation_id=receipt.invalidation_id,
        status=receipt.status,
        path_count=len(paths),
    )
    return receipt


def get_invalidation_status(
    cloudfront_client: Any, distribution_id: str, invalidation_id: str
) -> str:
    response = cloudfront_client.get_invalidation(
        DistributionId=distribution_id, Id=invalidation_id
    )
    return str(response["Invalidation"]["Status"])


def poll_invalidation(
    cloudfront_client: Any,
    distribution_id: str,
    invalidation_id: str,
    *,
    max_polls: int = DEFAULT_MAX_POLLS,
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Poll GetInvalidation until Completed, sleeping `interval_seconds` between polls.

    Returns the Completed status; raises StatusPollTimeout after `max_polls`
    unsuccessful polls. API errors propagate.
    """
    status = InvalidationStatus.IN_PROGRESS.value
    for attempt in range(1, max_polls + 1):
        status = get_invalidation_status(cloudfront_client, distribution_id, invalidation_id)
        logger.info(
            "Invalidation status",
            invalidation_id=invalidation_id,
            status=status,
            attempt=attempt,
            max_polls=max_polls,
        )
        if status == InvalidationStatus.COMPLETED:
            return status
        if attempt < max_polls:
            sleep(interval_seconds)
    raise StatusPollTimeout(invalidation_id, attempts=max_polls, last_status=status)
