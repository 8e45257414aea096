"""
site_deploy.policy — Content-Type and Cache-Control assignment.

classify_file() is pure and total: every path maps to exactly one
(content type, cache tier) pair. Tier resolution, first match wins:

    1. service worker file name    -> NO_STORE (sw.js, service-worker.js)
    2. path under _next/static/   -> IMMUTABLE (content-hashed build artifact)
    3. FILE_TYPES[extension].tier -> LONG_LIVED or REVALIDATED
    4. unknown extension          -> application/octet-stream, REVALIDATED
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath

from site_deploy.models import CacheHeaders, CacheTier, FileAsset

DEFAULT_CONTENT_TYPE = "application/octet-stream"
BUILD_ARTIFACT_SEGMENT = "_next/static/"
SHORT_CACHE_MARKERS: tuple[str, ...] = ("max-age=300", "no-cache")
# Service workers are never cached.
NO_STORE_FILENAMES: frozenset[str] = frozenset({"sw.js", "service-worker.js"})


@dataclass(frozen=True)
class FileType:
    content_type: str
    tier: CacheTier


IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".webp", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".ico", ".avif"}
)

FILE_TYPES: dict[str, FileType] = {
    # Images
    ".webp": FileType("image/webp", CacheTier.LONG_LIVED),
    ".jpg": FileType("image/jpeg", CacheTier.LONG_LIVED),
    ".jpeg": FileType("image/jpeg", CacheTier.LONG_LIVED),
    ".png": FileType("image/png", CacheTier.LONG_LIVED),
    ".gif": FileType("image/gif", CacheTier.LONG_LIVED),
    ".svg": FileType("image/svg+xml", CacheTier.LONG_LIVED),
    ".ico": FileType("image/x-icon", CacheTier.LONG_LIVED),
    ".avif": FileType("image/avif", CacheTier.LONG_LIVED),
    # Fonts
    ".woff": FileType("font/woff", CacheTier.LONG_LIVED),
    ".woff2": FileType("font/woff2", CacheTier.LONG_LIVED),
    ".ttf": FileType("font/ttf", CacheTier.LONG_LIVED),
    ".eot": FileType("application/vnd.ms-fontobject", CacheTier.LONG_LIVED),
    # Scripts and styles; only immutable when hashed under _next/static/
    ".js": FileType("application/javascript", CacheTier.LONG_LIVED),
    ".css": FileType("text/css", CacheTier.LONG_LIVED),
    # Documents
    ".html": FileType("text/html", CacheTier.REVALIDATED),
    ".xml": FileType("application/xml", CacheTier.REVALIDATED),
    ".txt": FileType("text/plain", CacheTier.REVALIDATED),
    ".json": FileType("application/json", CacheTier.REVALIDATED),
    ".map": FileType("application/json", CacheTier.REVALIDATED),
    ".pdf": FileType("application/pdf", CacheTier.REVALIDATED),
}

_UNMATCHED = FileType(DEFAULT_CONTENT_TYPE, CacheTier.REVALIDATED)


def is_build_artifact(path: str) -> bool:
    normalised = "/" + path.lstrip("/")
    return f"/{BUILD_ARTIFACT_SEGMENT}" in normalised


def is_service_worker(path: str) -> bool:
    return PurePosixPath(path).name.lower() in NO_STORE_FILENAMES


def classify_file(path: str) -> CacheHeaders:
    """Return the headers an object at `path` is uploaded with."""
    file_type = FILE_TYPES.get(FileAsset(path).extension, _UNMATCHED)
    if is_service_worker(path):
        tier = CacheTier.NO_STORE
    elif is_build_artifact(path):
        tier = CacheTier.IMMUTABLE
    else:
        tier = file_type.tier
    return CacheHeaders(content_type=file_type.content_type, cache_control=tier.value)


def normalise_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lower-case and dot-prefix extensions: {"JSON", ".Xml"} -> {".json", ".xml"}."""
    result: set[str] = set()
    for ext in extensions:
        cleaned = ext.strip().lower()
        if not cleaned:
            continue
        result.add(cleaned if cleaned.startswith(".") else f".{cleaned}")
    return frozenset(result)


def requires_invalidation(
    path: str,
    headers: CacheHeaders,
    *,
    always_invalidate: frozenset[str] = frozenset(),
) -> bool:
    """Decide whether an uploaded object must be purged from the CDN.

    True for images (regardless of tier), for short-cache objects, and for any
    extension listed in `always_invalidate`. Hashed artifacts never qualify
    unless they are images.
    """
    extension = FileAsset(path).extension
    if extension in IMAGE_EXTENSIONS or extension in always_invalidate:
        return True
    return any(marker in headers.cache_control for marker in SHORT_CACHE_MARKERS)
