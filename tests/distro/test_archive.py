"""
Tests for archive parsing and extraction.
"""

import io
import tarfile
import zipfile

import pytest
import responses

from conftest import make_tar_gz, node_archive_bytes
from toolpin.core.download import DownloadError
from toolpin.core.exceptions import CacheCorrupt
from toolpin.distro.archive import Archive, ArchiveError, archive_format


class TestArchiveFormat:
    def test_known_extensions(self, tmp_path):
        assert archive_format(tmp_path / "node.tar.gz") == "tar.gz"
        assert archive_format(tmp_path / "node.tgz") == "tar.gz"
        assert archive_format(tmp_path / "node.zip") == "zip"

    def test_unknown_extension(self, tmp_path):
        with pytest.raises(ArchiveError):
            archive_format(tmp_path / "node.7z")


class TestArchiveLoad:
    """Loading doubles as the cache validity check."""

    def test_load_tar_gz(self, tmp_path):
        path = tmp_path / "node-v10.1.0-linux-x64.tar.gz"
        path.write_bytes(node_archive_bytes("10.1.0"))

        archive = Archive.load(path)

        assert archive.format == "tar.gz"
        assert archive.member_count == 2
        assert archive.compressed_size == path.stat().st_size
        assert archive.uncompressed_size == len("#!/bin/sh\necho v10.1.0\n") + len("node\n")

    def test_load_zip(self, tmp_path):
        path = tmp_path / "node-v10.1.0-win-x64.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("node-v10.1.0-win-x64/node.exe", b"MZ")

        archive = Archive.load(path)

        assert archive.format == "zip"
        assert archive.uncompressed_size == 2

    def test_truncated_archive_is_corrupt(self, tmp_path):
        data = node_archive_bytes("10.1.0")
        path = tmp_path / "node-v10.1.0-linux-x64.tar.gz"
        path.write_bytes(data[: len(data) // 2])

        with pytest.raises(CacheCorrupt) as exc_info:
            Archive.load(path)

        assert exc_info.value.path == path

    def test_not_an_archive_is_corrupt(self, tmp_path):
        path = tmp_path / "yarn-v1.7.0.tar.gz"
        path.write_text("<html>Not Found</html>")

        with pytest.raises(CacheCorrupt):
            Archive.load(path)

    def test_missing_file_is_corrupt(self, tmp_path):
        with pytest.raises(CacheCorrupt):
            Archive.load(tmp_path / "missing.tar.gz")

    def test_empty_archive_has_unknown_size(self, tmp_path):
        path = tmp_path / "empty.tar.gz"
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz"):
            pass
        path.write_bytes(buffer.getvalue())

        assert Archive.load(path).uncompressed_size is None


class TestArchiveFetch:
    URL = "https://github.com/yarnpkg/yarn/releases/download/v1.7.0/yarn-v1.7.0.tar.gz"

    @responses.activate
    def test_fetch_downloads_and_parses(self, tmp_path):
        data = make_tar_gz("yarn-v1.7.0", {"bin/yarn": "yarn"})
        responses.add(responses.GET, self.URL, body=data, status=200)

        archive = Archive.fetch(self.URL, tmp_path / "yarn-v1.7.0.tar.gz")

        assert archive.member_count == 1

    @responses.activate
    def test_fetch_error(self, tmp_path):
        responses.add(responses.GET, self.URL, status=404)

        with pytest.raises(DownloadError):
            Archive.fetch(self.URL, tmp_path / "yarn-v1.7.0.tar.gz")


class TestArchiveUnpack:
    def test_unpack_reports_progress(self, tmp_path):
        path = tmp_path / "node-v10.1.0-linux-x64.tar.gz"
        path.write_bytes(node_archive_bytes("10.1.0"))
        archive = Archive.load(path)
        reported = []

        archive.unpack(tmp_path / "out", reported.append)

        root = tmp_path / "out" / "node-v10.1.0-linux-x64"
        assert (root / "bin" / "node").read_text() == "#!/bin/sh\necho v10.1.0\n"
        assert sum(reported) == archive.uncompressed_size

    def test_unpack_zip(self, tmp_path):
        path = tmp_path / "node-v10.1.0-win-x64.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("node-v10.1.0-win-x64/node.exe", b"MZ")

        Archive.load(path).unpack(tmp_path / "out")

        assert (tmp_path / "out" / "node-v10.1.0-win-x64" / "node.exe").read_bytes() == b"MZ"

    def test_traversal_is_blocked(self, tmp_path):
        path = tmp_path / "evil.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("../escaped.txt", b"gotcha")

        with pytest.raises(ArchiveError):
            Archive.load(path).unpack(tmp_path / "out")

        assert not (tmp_path / "escaped.txt").exists()
