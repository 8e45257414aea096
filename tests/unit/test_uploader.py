"""
Unit tests for site_deploy.uploader — S3 upload against moto.

Coverage:
  - Every file uploaded with its Content-Type / Cache-Control and metadata.
  - Invalidation paths collected for images and short-cache documents only.
  - Missing or empty build directory fails before any upload.
  - First PutObject failure aborts the run.
  - Service workers carry no-store headers and a past Expires.
  - An unreadable build file raises UploadFailed.
  - only_changed skips objects with a matching file-hash.
  - Stale object cleanup.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws
from site_deploy.exceptions import BuildDirectoryMissing, UploadFailed
from site_deploy.uploader import (
    EXPIRED,
    build_stats,
    delete_stale_objects,
    file_hash,
    format_bytes,
    iter_build_files,
    upload_all,
)

REGION = "us-east-1"
BUCKET = "vivid-site-test"
DEPLOYMENT_ID = "deploy-1700000000000"

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


def _write(root: Path, rel: str, content: bytes = b"x") -> None:
    target = root / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    root = tmp_path / "out"
    _write(root, "index.html", b"<html>home</html>")
    _write(root, "about/index.html", b"<html>about</html>")
    _write(root, "images/hero.webp", b"RIFF....WEBP")
    _write(root, "_next/static/chunks/main.js", b"console.log('hi')")
    _write(root, "fonts/inter.woff2", b"wOF2")
    _write(root, "sitemap.xml", b"<urlset/>")
    return root


def _s3() -> object:
    client = boto3.client("s3", region_name=REGION)
    client.create_bucket(Bucket=BUCKET)
    return client


# ---------------------------------------------------------------------------
# Build tree helpers
# ---------------------------------------------------------------------------


def test_iter_build_files_yields_forward_slash_keys(build_dir: Path) -> None:
    keys = [key for _, key in iter_build_files(build_dir)]
    assert keys == sorted(keys)
    assert "_next/static/chunks/main.js" in keys
    assert "about/index.html" in keys
    assert len(keys) == 6


def test_build_stats(build_dir: Path) -> None:
    stats = build_stats(build_dir)
    assert stats.file_count == 6
    assert stats.total_size == sum(p.stat().st_size for p in build_dir.rglob("*") if p.is_file())


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 Bytes"), (512, "512 Bytes"), (1024, "1 KB"), (1536, "1.5 KB"), (5 * 1024**2, "5 MB")],
)
def test_format_bytes(size: int, expected: str) -> None:
    assert format_bytes(size) == expected


def test_missing_build_dir_raises(tmp_path: Path) -> None:
    client = MagicMock()
    with pytest.raises(BuildDirectoryMissing, match="does not exist"):
        upload_all(client, bucket=BUCKET, build_dir=tmp_path / "nope", deployment_id=DEPLOYMENT_ID)
    client.put_object.assert_not_called()


def test_empty_build_dir_raises(tmp_path: Path) -> None:
    (tmp_path / "out" / "nested").mkdir(parents=True)
    client = MagicMock()
    with pytest.raises(BuildDirectoryMissing, match="is empty"):
        upload_all(client, bucket=BUCKET, build_dir=tmp_path / "out", deployment_id=DEPLOYMENT_ID)
    client.put_object.assert_not_called()


# ---------------------------------------------------------------------------
# upload_all
# ---------------------------------------------------------------------------


@mock_aws
def test_upload_all_sets_headers_and_metadata(build_dir: Path) -> None:
    client = _s3()

    result = upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)

    assert result.count == 6
    hero = client.head_object(Bucket=BUCKET, Key="images/hero.webp")
    assert hero["ContentType"] == "image/webp"
    assert hero["CacheControl"] == "public, max-age=31536000"
    assert hero["Metadata"]["deployment-id"] == DEPLOYMENT_ID
    assert hero["Metadata"]["file-hash"] == file_hash(b"RIFF....WEBP")
    assert "uploaded-at" in hero["Metadata"]

    index = client.head_object(Bucket=BUCKET, Key="index.html")
    assert index["ContentType"] == "text/html"
    assert index["CacheControl"] == "public, max-age=300, must-revalidate"

    chunk = client.head_object(Bucket=BUCKET, Key="_next/static/chunks/main.js")
    assert chunk["ContentType"] == "application/javascript"
    assert chunk["CacheControl"] == "public, max-age=31536000, immutable"

    body = client.get_object(Bucket=BUCKET, Key="about/index.html")["Body"].read()
    assert body == b"<html>about</html>"


@mock_aws
def test_upload_all_collects_invalidation_paths(build_dir: Path) -> None:
    client = _s3()

    result = upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)

    assert sorted(result.invalidation_paths) == [
        "/about/index.html",
        "/images/hero.webp",
        "/index.html",
        "/sitemap.xml",
    ]
    assert "/_next/static/chunks/main.js" not in result.invalidation_paths
    assert "/fonts/inter.woff2" not in result.invalidation_paths


@mock_aws
def test_always_invalidate_extensions_are_added(build_dir: Path) -> None:
    client = _s3()

    result = upload_all(
        client,
        bucket=BUCKET,
        build_dir=build_dir,
        deployment_id=DEPLOYMENT_ID,
        always_invalidate=frozenset({".woff2"}),
    )

    assert "/fonts/inter.woff2" in result.invalidation_paths


def test_upload_failure_aborts_run(build_dir: Path) -> None:
    client = MagicMock()
    client.put_object.side_effect = [
        {},
        ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"),
        {},
    ]

    with pytest.raises(UploadFailed) as exc_info:
        upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)

    keys = [key for _, key in iter_build_files(build_dir)]
    assert exc_info.value.key == keys[1]
    assert isinstance(exc_info.value.__cause__, ClientError)
    assert client.put_object.call_count == 2


def test_service_worker_uploaded_with_expired_header(tmp_path: Path) -> None:
    root = tmp_path / "out"
    _write(root, "index.html")
    _write(root, "sw.js", b"self.skipWaiting()")
    client = MagicMock()

    result = upload_all(client, bucket=BUCKET, build_dir=root, deployment_id=DEPLOYMENT_ID)

    calls = {c.kwargs["Key"]: c.kwargs for c in client.put_object.call_args_list}
    assert calls["sw.js"]["CacheControl"] == "no-cache, no-store, must-revalidate"
    assert calls["sw.js"]["Expires"] == EXPIRED
    assert "Expires" not in calls["index.html"]
    assert "/sw.js" in result.invalidation_paths


def test_unreadable_build_file_raises_upload_failed(
    build_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_read_bytes = Path.read_bytes

    def _read_bytes(self: Path) -> bytes:
        if self.name == "sitemap.xml":
            raise PermissionError(13, "Permission denied", str(self))
        return original_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", _read_bytes)
    client = MagicMock()

    with pytest.raises(UploadFailed) as exc_info:
        upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)

    assert exc_info.value.key == "sitemap.xml"
    assert isinstance(exc_info.value.__cause__, PermissionError)


@mock_aws
def test_upload_to_missing_bucket_raises_upload_failed(build_dir: Path) -> None:
    client = boto3.client("s3", region_name=REGION)
    with pytest.raises(UploadFailed, match="NoSuchBucket"):
        upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)


@mock_aws
def test_only_changed_skips_identical_objects(build_dir: Path) -> None:
    client = _s3()
    upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)

    (build_dir / "index.html").write_bytes(b"<html>home v2</html>")
    result = upload_all(
        client,
        bucket=BUCKET,
        build_dir=build_dir,
        deployment_id="deploy-2",
        only_changed=True,
    )

    assert [obj.key for obj in result.uploaded] == ["index.html"]
    assert len(result.skipped) == 5
    assert result.invalidation_paths == ["/index.html"]


# ---------------------------------------------------------------------------
# delete_stale_objects
# ---------------------------------------------------------------------------


@mock_aws
def test_delete_stale_objects_removes_only_unknown_keys(build_dir: Path) -> None:
    client = _s3()
    upload_all(client, bucket=BUCKET, build_dir=build_dir, deployment_id=DEPLOYMENT_ID)
    client.put_object(Bucket=BUCKET, Key="old-page/index.html", Body=b"gone")

    keep = {key for _, key in iter_build_files(build_dir)}
    deleted = delete_stale_objects(client, bucket=BUCKET, keep_keys=keep)

    assert deleted == ["old-page/index.html"]
    remaining = {obj["Key"] for obj in client.list_objects_v2(Bucket=BUCKET)["Contents"]}
    assert remaining == keep


@mock_aws
def test_delete_stale_objects_noop_on_empty_bucket() -> None:
    client = _s3()
    assert delete_stale_objects(client, bucket=BUCKET, keep_keys={"index.html"}) == []
