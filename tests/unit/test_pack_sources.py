#!/usr/bin/env python3
"""
Unit tests for pack manifests and pack sources.

Distributor tests use a mocked requests session; no network access.
"""

from unittest.mock import MagicMock

import pytest
import requests

from packdeployer.core.errors import ConfigurationError, PackFetchError
from packdeployer.packs.manifest import read_manifest
from packdeployer.packs.sources import (
    DistributorPackSource,
    FilesystemPackSource,
    PackRef,
    archive_directory,
    compute_digest,
    filesystem_sources,
)


@pytest.fixture
def no_sleep(monkeypatch):
    """Skip retry back-off delays."""
    monkeypatch.setattr("packdeployer.core.retry.time.sleep", lambda _: None)


def response(status_code, content=b""):
    mock = MagicMock()
    mock.status_code = status_code
    mock.content = content
    return mock


@pytest.mark.unit
class TestReadManifest:
    """Test manifest loading from directories and archives."""

    def test_directory_yaml(self, tmp_path, make_pack):
        path = make_pack(tmp_path, "dev.greentic.a", flows=["main"], components=[{"id": "c1"}])

        manifest = read_manifest(path)

        assert manifest.pack_id == "dev.greentic.a"
        assert manifest.version == "0.1.0"
        assert manifest.flows == ["main"]
        assert manifest.components[0].id == "c1"

    def test_archive_json(self, tmp_path, make_pack):
        path = make_pack(tmp_path, "dev.greentic.b", flows=["f1", "f2"], archive=True, fmt="json")

        manifest = read_manifest(path)

        assert path.suffix == ".gtpack"
        assert manifest.pack_id == "dev.greentic.b"
        assert manifest.flows == ["f1", "f2"]

    def test_missing_pack(self, tmp_path):
        with pytest.raises(ConfigurationError, match="pack not found"):
            read_manifest(tmp_path / "nope.gtpack")

    def test_directory_without_manifest(self, tmp_path):
        (tmp_path / "empty").mkdir()

        with pytest.raises(ConfigurationError, match="manifest missing"):
            read_manifest(tmp_path / "empty")

    def test_invalid_archive(self, tmp_path):
        bad = tmp_path / "bad.gtpack"
        bad.write_bytes(b"not a zip")

        with pytest.raises(ConfigurationError, match="not a valid zip"):
            read_manifest(bad)

    def test_manifest_without_pack_id(self, tmp_path):
        pack = tmp_path / "anon"
        pack.mkdir()
        (pack / "manifest.yaml").write_text("version: 1.0.0\n")

        with pytest.raises(ConfigurationError, match="missing 'pack_id'"):
            read_manifest(pack)

    def test_invalid_yaml(self, tmp_path):
        pack = tmp_path / "broken"
        pack.mkdir()
        (pack / "manifest.yaml").write_text("pack_id: [unterminated\n")

        with pytest.raises(ConfigurationError, match="invalid"):
            read_manifest(pack)


@pytest.mark.unit
class TestPackRef:
    """Test registry references."""

    def test_valid(self):
        ref = PackRef("dev.greentic.a", "1.0.0", "sha256:abc")
        assert ref.version == "1.0.0"

    def test_invalid_version(self):
        with pytest.raises(ConfigurationError, match="invalid pack version"):
            PackRef("dev.greentic.a", "latest", "sha256:abc")

    def test_invalid_digest(self):
        with pytest.raises(ConfigurationError, match="unsupported pack digest"):
            PackRef("dev.greentic.a", "1.0.0", "md5:abc")


@pytest.mark.unit
class TestFilesystemPackSource:
    """Test local pack discovery."""

    def test_available_in_sorted_order(self, tmp_path, make_pack):
        make_pack(tmp_path, "dev.b", name="b")
        make_pack(tmp_path, "dev.a", name="a", archive=True)
        (tmp_path / "notes.txt").write_text("ignored")
        (tmp_path / "broken").mkdir()

        source = FilesystemPackSource(tmp_path, label="packs-dir")

        assert source.available() == ["dev.a", "dev.b"]
        assert source.describe() == f"packs-dir ({tmp_path})"

    def test_root_can_be_a_pack(self, tmp_path, make_pack):
        path = make_pack(tmp_path, "dev.only")

        assert FilesystemPackSource(path).available() == ["dev.only"]

    def test_missing_root(self, tmp_path):
        assert FilesystemPackSource(tmp_path / "absent").available() == []

    def test_locate_by_version(self, tmp_path, make_pack):
        make_pack(tmp_path, "dev.a", name="a-1", version="1.0.0")
        newer = make_pack(tmp_path, "dev.a", name="a-2", version="2.0.0")

        source = FilesystemPackSource(tmp_path)

        assert source.locate("dev.a", "2.0.0") == newer
        assert source.locate("dev.a", "3.0.0") is None

    def test_resolve_verifies_digest(self, tmp_path, make_pack):
        path = make_pack(tmp_path, "dev.a", archive=True)
        data = path.read_bytes()
        source = FilesystemPackSource(tmp_path)

        assert source.resolve("dev.a", digest=compute_digest(data)) == data
        with pytest.raises(PackFetchError, match="digest mismatch"):
            source.resolve("dev.a", digest="sha256:" + "0" * 64)

    def test_resolve_missing(self, tmp_path):
        with pytest.raises(PackFetchError, match="pack dev.x not found"):
            FilesystemPackSource(tmp_path).resolve("dev.x")

    def test_materialize_returns_pack_in_place(self, tmp_path, make_pack):
        path = make_pack(tmp_path / "packs", "dev.a")

        located = FilesystemPackSource(tmp_path / "packs").materialize("dev.a", cache_dir=tmp_path / "cache")

        assert located == path
        assert not (tmp_path / "cache").exists()

    def test_directory_archive_is_stable(self, tmp_path, make_pack):
        path = make_pack(tmp_path, "dev.a", flows=["f"])

        assert archive_directory(path) == archive_directory(path)

    def test_filesystem_sources_skips_unset(self, tmp_path):
        sources = filesystem_sources([("packs-dir", tmp_path), ("dist", None)])

        assert len(sources) == 1
        assert sources[0].label == "packs-dir"


@pytest.mark.unit
class TestDistributorPackSource:
    """Test remote fetches with bounded retry."""

    def test_fetch_success_sends_auth_and_digest(self):
        data = b"PK-pack-bytes"
        session = MagicMock()
        session.get.return_value = response(200, data)
        source = DistributorPackSource("https://dist.example.test/", token="t0k", session=session)

        assert source.resolve("dev.a", "1.0.0", compute_digest(data)) == data

        url = session.get.call_args[0][0]
        headers = session.get.call_args[1]["headers"]
        assert url == "https://dist.example.test/packs/dev.a/1.0.0"
        assert headers["Authorization"] == "Bearer t0k"
        assert headers["X-Pack-Digest"] == compute_digest(data)

    def test_latest_when_no_version(self):
        source = DistributorPackSource("https://dist.example.test", session=MagicMock())
        assert source.pack_url("dev.a", None) == "https://dist.example.test/packs/dev.a/latest"

    def test_transient_errors_are_retried(self, no_sleep):
        session = MagicMock()
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            response(503),
            response(200, b"ok"),
        ]
        source = DistributorPackSource("https://dist.example.test", session=session)

        assert source.resolve("dev.a", "1.0.0") == b"ok"
        assert session.get.call_count == 3

    def test_retry_is_bounded(self, no_sleep):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("slow")
        source = DistributorPackSource("https://dist.example.test", session=session)

        with pytest.raises(PackFetchError) as exc_info:
            source.resolve("dev.a", "1.0.0")

        assert exc_info.value.transient is True
        assert session.get.call_count == 3

    def test_not_found_is_not_retried(self, no_sleep):
        session = MagicMock()
        session.get.return_value = response(404)
        source = DistributorPackSource("https://dist.example.test", session=session)

        with pytest.raises(PackFetchError, match="404"):
            source.resolve("dev.a", "1.0.0")
        assert session.get.call_count == 1

    def test_digest_mismatch_is_not_retried(self, no_sleep):
        session = MagicMock()
        session.get.return_value = response(200, b"tampered")
        source = DistributorPackSource("https://dist.example.test", session=session)

        with pytest.raises(PackFetchError, match="digest mismatch"):
            source.resolve("dev.a", "1.0.0", "sha256:" + "0" * 64)
        assert session.get.call_count == 1

    def test_materialize_caches_by_digest(self, tmp_path, make_pack):
        data = make_pack(tmp_path / "src", "dev.a", archive=True).read_bytes()
        digest = compute_digest(data)
        session = MagicMock()
        session.get.return_value = response(200, data)
        source = DistributorPackSource("https://dist.example.test", session=session)

        first = source.materialize("dev.a", "1.0.0", digest, cache_dir=tmp_path / "cache")
        second = source.materialize("dev.a", "1.0.0", digest, cache_dir=tmp_path / "cache")

        assert first == second == tmp_path / "cache" / (digest.replace(":", "-") + ".gtpack")
        assert read_manifest(first).pack_id == "dev.a"
        assert session.get.call_count == 1
        assert not source.available()
