"""
Tests for the fetch, cache and install pipeline.

All network traffic is mocked with responses; archives are real tarballs
built in memory.
"""

import hashlib

import pytest
import responses

from conftest import node_archive_bytes, yarn_archive_bytes
from toolpin.catalog import Catalog
from toolpin.core.download import partial_path
from toolpin.core.exceptions import (
    ChecksumMismatch,
    DownloadFailed,
    InstallRenameFailed,
    UnpackFailed,
)
from toolpin.core.platform import PlatformInfo
from toolpin.core.version import Version
from toolpin.distro.fetcher import DistributionFetcher, Distro, DistroSource, FetchStatus
from toolpin.distro.kinds import DistroNaming, NodeNaming

NODE_URL = "https://nodejs.org/dist/v10.1.0/node-v10.1.0-linux-x64.tar.gz"
YARN_URL = "https://github.com/yarnpkg/yarn/releases/download/v1.7.0/yarn-v1.7.0.tar.gz"
V10 = Version("10.1.0")


@pytest.fixture
def catalog(layout):
    return Catalog(layout.catalog_file)


@pytest.fixture
def node_fetcher(node_naming, layout):
    return DistributionFetcher(node_naming, layout)


class TestFetch:
    """Test DistributionFetcher.fetch()."""

    @responses.activate
    def test_fresh_install(self, node_fetcher, catalog, layout):
        responses.add(responses.GET, NODE_URL, body=node_archive_bytes("10.1.0"), status=200)

        result = node_fetcher.fetch(V10, catalog)

        assert result.status is FetchStatus.INSTALLED
        assert result.newly_installed
        assert result.path == layout.version_dir("node", "10.1.0")
        assert (result.path / "bin" / "node").is_file()
        assert node_fetcher.cache_file(V10).is_file()
        # Staging area is cleaned up
        assert list(layout.tmp_dir.iterdir()) == []

    @responses.activate
    def test_fetch_never_writes_catalog(self, node_fetcher, catalog, layout):
        responses.add(responses.GET, NODE_URL, body=node_archive_bytes("10.1.0"), status=200)

        node_fetcher.fetch(V10, catalog)

        assert not layout.catalog_file.exists()

    @responses.activate
    def test_second_fetch_is_a_noop(self, node_fetcher, catalog):
        responses.add(responses.GET, NODE_URL, body=node_archive_bytes("10.1.0"), status=200)
        first = node_fetcher.fetch(V10, catalog)
        catalog.record_installed(node_fetcher.kind, first.version)

        second = node_fetcher.fetch(V10, catalog)

        assert second.status is FetchStatus.ALREADY_INSTALLED
        assert second.path == first.path
        assert len(responses.calls) == 1

    @responses.activate
    def test_valid_cache_skips_download(self, node_fetcher, catalog):
        cache_file = node_fetcher.cache_file(V10)
        cache_file.parent.mkdir(parents=True)
        cache_file.write_bytes(node_archive_bytes("10.1.0"))

        result = node_fetcher.fetch(V10, catalog)

        assert result.newly_installed
        assert len(responses.calls) == 0

    @responses.activate
    def test_corrupt_cache_is_downloaded_again(self, node_fetcher, catalog):
        data = node_archive_bytes("10.1.0")
        cache_file = node_fetcher.cache_file(V10)
        cache_file.parent.mkdir(parents=True)
        cache_file.write_bytes(data[: len(data) // 3])
        responses.add(responses.GET, NODE_URL, body=data, status=200)

        result = node_fetcher.fetch(V10, catalog)

        assert result.newly_installed
        assert len(responses.calls) == 1
        assert cache_file.read_bytes() == data

    @responses.activate
    def test_download_failure(self, node_fetcher, catalog, layout):
        responses.add(responses.GET, NODE_URL, status=404)

        with pytest.raises(DownloadFailed) as exc_info:
            node_fetcher.fetch(V10, catalog)

        assert exc_info.value.kind == "node"
        assert exc_info.value.version == "10.1.0"
        cache_file = node_fetcher.cache_file(V10)
        assert not cache_file.exists()
        assert not partial_path(cache_file).exists()
        assert not layout.version_dir("node", "10.1.0").exists()

    @responses.activate
    def test_downloaded_garbage_is_not_cached(self, node_fetcher, catalog):
        responses.add(responses.GET, NODE_URL, body=b"<html>error</html>", status=200)

        with pytest.raises(DownloadFailed):
            node_fetcher.fetch(V10, catalog)

        assert not node_fetcher.cache_file(V10).exists()

    @responses.activate
    def test_occupied_destination_fails_rename(self, node_fetcher, catalog, layout):
        """A file squatting on the versioned path aborts the install."""
        responses.add(responses.GET, NODE_URL, body=node_archive_bytes("10.1.0"), status=200)
        destination = layout.version_dir("node", "10.1.0")
        destination.parent.mkdir(parents=True)
        destination.write_text("not a directory")

        with pytest.raises(InstallRenameFailed):
            node_fetcher.fetch(V10, catalog)

        assert not catalog.contains(node_fetcher.kind, V10)
        assert destination.read_text() == "not a directory"
        assert list(layout.tmp_dir.iterdir()) == []

    @responses.activate
    def test_completed_directory_counts_as_installed(self, node_fetcher, catalog, layout):
        """A full tree left by a concurrent install is not unpacked again."""
        destination = layout.version_dir("node", "10.1.0")
        (destination / "bin").mkdir(parents=True)
        (destination / "bin" / "node").write_text("#!/bin/sh\n")

        result = node_fetcher.fetch(V10, catalog)

        assert result.status is FetchStatus.INSTALLED
        assert len(responses.calls) == 0

    @responses.activate
    def test_empty_directory_is_not_an_install(self, node_fetcher, catalog, layout):
        destination = layout.version_dir("node", "10.1.0")
        destination.mkdir(parents=True)

        with pytest.raises(InstallRenameFailed, match="bin/node"):
            node_fetcher.fetch(V10, catalog)

        assert list(destination.iterdir()) == []
        assert len(responses.calls) == 0

    @responses.activate
    def test_explicit_url(self, yarn_naming, layout, catalog):
        mirror = "https://mirror.example.com/yarn/yarn-v1.7.0.tar.gz"
        responses.add(responses.GET, mirror, body=yarn_archive_bytes("1.7.0"), status=200)
        fetcher = DistributionFetcher(yarn_naming, layout)

        result = fetcher.fetch(Version("1.7.0"), catalog, url=mirror)

        assert (result.path / "bin" / "yarn").is_file()
        assert responses.calls[0].request.url == mirror

    @responses.activate
    def test_configured_index_root(self, node_naming, layout, catalog):
        mirror = "https://mirror.example.com/node/v10.1.0/node-v10.1.0-linux-x64.tar.gz"
        responses.add(responses.GET, mirror, body=node_archive_bytes("10.1.0"), status=200)
        fetcher = DistributionFetcher(
            node_naming, layout, index_root="https://mirror.example.com/node/"
        )

        assert fetcher.fetch(V10, catalog).newly_installed


class TestChecksums:
    """Test checksum verification when a digest is known."""

    @responses.activate
    def test_expected_digest_matches(self, yarn_naming, layout, catalog):
        data = yarn_archive_bytes("1.7.0")
        responses.add(responses.GET, YARN_URL, body=data, status=200)
        fetcher = DistributionFetcher(yarn_naming, layout)

        result = fetcher.fetch(
            Version("1.7.0"), catalog, expected_sha256=hashlib.sha256(data).hexdigest()
        )

        assert result.newly_installed

    @responses.activate
    def test_expected_digest_mismatch(self, yarn_naming, layout, catalog):
        responses.add(responses.GET, YARN_URL, body=yarn_archive_bytes("1.7.0"), status=200)
        fetcher = DistributionFetcher(yarn_naming, layout)

        with pytest.raises(ChecksumMismatch):
            fetcher.fetch(Version("1.7.0"), catalog, expected_sha256="0" * 64)

        assert not fetcher.cache_file(Version("1.7.0")).exists()

    @responses.activate
    def test_cached_file_with_wrong_digest_is_replaced(self, yarn_naming, layout, catalog):
        data = yarn_archive_bytes("1.7.0")
        fetcher = DistributionFetcher(yarn_naming, layout)
        cache_file = fetcher.cache_file(Version("1.7.0"))
        cache_file.parent.mkdir(parents=True)
        cache_file.write_bytes(yarn_archive_bytes("1.6.0"))
        responses.add(responses.GET, YARN_URL, body=data, status=200)

        fetcher.fetch(Version("1.7.0"), catalog, expected_sha256=hashlib.sha256(data).hexdigest())

        assert cache_file.read_bytes() == data

    @responses.activate
    def test_published_shasums(self, node_naming, layout, catalog):
        data = node_archive_bytes("10.1.0")
        digest = hashlib.sha256(data).hexdigest()
        responses.add(
            responses.GET,
            "https://nodejs.org/dist/v10.1.0/SHASUMS256.txt",
            body=f"{'f' * 64}  node-v10.1.0-darwin-x64.tar.gz\n{digest}  node-v10.1.0-linux-x64.tar.gz\n",
        )
        responses.add(responses.GET, NODE_URL, body=data, status=200)
        fetcher = DistributionFetcher(node_naming, layout, verify_checksums=True)

        assert fetcher.fetch(V10, catalog).newly_installed

    @responses.activate
    def test_published_shasums_mismatch(self, node_naming, layout, catalog):
        responses.add(
            responses.GET,
            "https://nodejs.org/dist/v10.1.0/SHASUMS256.txt",
            body=f"{'f' * 64}  node-v10.1.0-linux-x64.tar.gz\n",
        )
        responses.add(responses.GET, NODE_URL, body=node_archive_bytes("10.1.0"), status=200)
        fetcher = DistributionFetcher(node_naming, layout, verify_checksums=True)

        with pytest.raises(ChecksumMismatch):
            fetcher.fetch(V10, catalog)

    @responses.activate
    def test_listing_without_entry(self, node_naming, layout, catalog):
        responses.add(
            responses.GET, "https://nodejs.org/dist/v10.1.0/SHASUMS256.txt", body=""
        )
        fetcher = DistributionFetcher(node_naming, layout, verify_checksums=True)

        with pytest.raises(DownloadFailed, match="no checksum"):
            fetcher.fetch(V10, catalog)

    def test_yarn_has_no_published_listing(self, yarn_naming, layout):
        assert DistributionFetcher(yarn_naming, layout).published_checksum(Version("1.7.0")) is None


class TestDistroInstall:
    """Test Distro.install() on its own."""

    def test_unpack_failure_leaves_no_trace(self, tmp_path, node_naming, monkeypatch):
        from toolpin.distro.archive import ArchiveError

        cache_file = tmp_path / "node-v10.1.0-linux-x64.tar.gz"
        cache_file.write_bytes(node_archive_bytes("10.1.0"))
        distro = Distro.cached(node_naming, V10, cache_file)
        assert distro.source is DistroSource.CACHED

        def broken_unpack(destination, progress_callback=None):
            (destination / "partial").write_text("half")
            raise ArchiveError("disk full")

        monkeypatch.setattr(distro.archive, "unpack", broken_unpack)
        destination = tmp_path / "versions" / "node" / "10.1.0"

        with pytest.raises(UnpackFailed):
            distro.install(destination, tmp_path / "tmp")

        assert not destination.exists()
        assert list((tmp_path / "tmp").iterdir()) == []

    def test_unpack_progress(self, tmp_path, node_naming):
        cache_file = tmp_path / "node-v10.1.0-linux-x64.tar.gz"
        cache_file.write_bytes(node_archive_bytes("10.1.0"))
        distro = Distro.cached(node_naming, V10, cache_file)
        updates = []

        distro.install(tmp_path / "versions" / "node" / "10.1.0", tmp_path / "tmp", updates.append)

        assert updates[-1].phase == "unpacking"
        assert updates[-1].current_bytes == distro.archive.uncompressed_size
        assert updates[-1].percentage == 100.0


class TestCompleteInstall:
    """DistroNaming.is_complete_install()."""

    def test_node_needs_its_binary(self, node_naming, tmp_path):
        assert not node_naming.is_complete_install(tmp_path)

        (tmp_path / "bin").mkdir()
        (tmp_path / "bin" / "node").write_text("")

        assert node_naming.is_complete_install(tmp_path)

    def test_windows_node_binary_at_root(self, tmp_path):
        naming = NodeNaming(PlatformInfo("win", "x64"))
        (tmp_path / "node.exe").write_bytes(b"MZ")

        assert naming.entry_point() == "node.exe"
        assert naming.is_complete_install(tmp_path)

    def test_yarn_needs_its_script(self, yarn_naming, tmp_path):
        (tmp_path / "bin").mkdir()
        assert not yarn_naming.is_complete_install(tmp_path)

        (tmp_path / "bin" / "yarn").write_text("")

        assert yarn_naming.is_complete_install(tmp_path)

    def test_naming_is_abstract(self):
        with pytest.raises(TypeError):
            DistroNaming()
