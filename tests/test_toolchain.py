"""
Tests for wixpack.toolchain module.

Tests toolchain acquisition including:
- Download with transport and HTTP failures
- Integrity gate before extraction
- Entry-by-entry extraction and path safety
- Idempotent acquisition
- Cache reuse in ensure_toolchain
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import requests
import requests_mock

from wixpack.exceptions import (
    AcquireError,
    ArchiveIntegrityError,
    ExtractionError,
    NetworkError,
)
from wixpack.integrity import sha256_hex
from wixpack.toolchain import (
    TOOL_NAMES,
    WIX_SHA256,
    WIX_URL,
    ToolchainInstallation,
    acquire,
    download_and_verify,
    ensure_toolchain,
    extract_archive,
    fetch_archive,
)

pytestmark = pytest.mark.unit

URL = "https://example.com/wix311-binaries.zip"


def _tree(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


class TestToolchainInstallation:
    """Tests for the ToolchainInstallation value type."""

    def test_tool_paths(self, tmp_test_dir: Path):
        """Test that roles map to the WiX executables under root."""
        inst = ToolchainInstallation(tmp_test_dir)

        assert inst.heat == tmp_test_dir / "heat.exe"
        assert inst.candle == tmp_test_dir / "candle.exe"
        assert inst.light == tmp_test_dir / "light.exe"

    def test_unknown_role_raises(self, tmp_test_dir: Path):
        with pytest.raises(KeyError):
            ToolchainInstallation(tmp_test_dir).tool_path("sign")

    def test_missing_tools(self, tmp_test_dir: Path):
        """Test that missing_tools lists absent executables."""
        (tmp_test_dir / "heat.exe").write_bytes(b"x")
        inst = ToolchainInstallation(tmp_test_dir)

        assert inst.missing_tools() == ["candle.exe", "light.exe"]
        assert not inst.is_complete()

    def test_complete(self, tmp_test_dir: Path):
        for name in TOOL_NAMES.values():
            (tmp_test_dir / name).write_bytes(b"x")

        assert ToolchainInstallation(tmp_test_dir).is_complete()


class TestFetchArchive:
    """Tests for fetch_archive() and download_and_verify()."""

    def test_returns_body(self):
        with requests_mock.Mocker() as m:
            m.get(URL, content=b"zipdata")
            assert fetch_archive(URL) == b"zipdata"

    def test_http_error_raises_network_error(self):
        """Test that a non-2xx status becomes NetworkError."""
        with requests_mock.Mocker() as m:
            m.get(URL, status_code=404)
            with pytest.raises(NetworkError, match="download failed"):
                fetch_archive(URL)

    def test_transport_error_raises_network_error(self):
        """Test that connection failures become NetworkError."""
        with requests_mock.Mocker() as m:
            m.get(URL, exc=requests.exceptions.ConnectTimeout)
            with pytest.raises(NetworkError):
                fetch_archive(URL)

    def test_no_retry_on_failure(self):
        """Test that a failed request is issued exactly once."""
        with requests_mock.Mocker() as m:
            m.get(URL, status_code=503)
            with pytest.raises(NetworkError):
                fetch_archive(URL)
            assert m.call_count == 1

    def test_digest_mismatch_raises_archive_integrity_error(self):
        with requests_mock.Mocker() as m:
            m.get(URL, content=b"tampered")
            with pytest.raises(ArchiveIntegrityError, match="integrity check"):
                download_and_verify(URL, sha256_hex(b"pinned payload"))

    def test_malformed_pin_raises_archive_integrity_error(self):
        with requests_mock.Mocker() as m:
            m.get(URL, content=b"data")
            with pytest.raises(ArchiveIntegrityError):
                download_and_verify(URL, "not-a-digest")


class TestExtractArchive:
    """Tests for extract_archive()."""

    def test_preserves_relative_paths(self, tmp_test_dir: Path, wix_zip: bytes):
        dest = tmp_test_dir / "wix"
        files = extract_archive(wix_zip, dest)

        assert (dest / "heat.exe").read_bytes() == b"heat"
        assert (dest / "doc" / "LICENSE.TXT").read_text() == "license"
        assert len(files) == 5

    def test_no_part_files_left(self, tmp_test_dir: Path, wix_zip: bytes):
        """Test that staging files are renamed into place."""
        dest = tmp_test_dir / "wix"
        extract_archive(wix_zip, dest)

        assert not list(dest.rglob("*.part"))

    def test_overwrites_existing_entries(self, tmp_test_dir: Path, make_zip):
        dest = tmp_test_dir / "wix"
        dest.mkdir()
        (dest / "heat.exe").write_bytes(b"stale")

        extract_archive(make_zip({"heat.exe": b"fresh"}), dest)

        assert (dest / "heat.exe").read_bytes() == b"fresh"

    def test_invalid_zip_raises(self, tmp_test_dir: Path):
        with pytest.raises(ExtractionError, match="invalid zip"):
            extract_archive(b"not a zip", tmp_test_dir)

    @pytest.mark.parametrize(
        "name", ["../evil.exe", "bin/../../evil.exe", "/abs/evil.exe", "C:/evil.exe"]
    )
    def test_rejects_escaping_entries(self, tmp_test_dir: Path, make_zip, name):
        """Test that entries outside the destination are refused."""
        dest = tmp_test_dir / "wix"
        with pytest.raises(ExtractionError, match="escapes destination"):
            extract_archive(make_zip({name: b"x"}), dest)

        assert not (tmp_test_dir / "evil.exe").exists()

    def test_write_failure_raises_extraction_error(
        self, tmp_test_dir: Path, make_zip
    ):
        dest = tmp_test_dir / "wix"
        # A regular file where a directory is needed
        dest.mkdir()
        (dest / "doc").write_text("file, not dir")

        with pytest.raises(ExtractionError, match="failed to extract"):
            extract_archive(make_zip({"doc/readme.txt": "x"}), dest)


class TestAcquire:
    """Tests for acquire()."""

    def test_acquire_extracts_verified_archive(
        self, tmp_test_dir: Path, wix_zip: bytes
    ):
        dest = tmp_test_dir / "wix"
        with requests_mock.Mocker() as m:
            m.get(URL, content=wix_zip)
            inst = acquire(URL, sha256_hex(wix_zip), dest)

        assert inst.root == dest
        assert inst.is_complete()

    def test_acquire_twice_yields_identical_tree(
        self, tmp_test_dir: Path, wix_zip: bytes
    ):
        """Test that repeating acquisition leaves the same files."""
        dest = tmp_test_dir / "wix"
        with requests_mock.Mocker() as m:
            m.get(URL, content=wix_zip)
            acquire(URL, sha256_hex(wix_zip), dest)
            first = _tree(dest)
            acquire(URL, sha256_hex(wix_zip), dest)
            second = _tree(dest)

        assert first == second
        assert set(first) == {
            "heat.exe",
            "candle.exe",
            "light.exe",
            "wix.dll",
            "doc/LICENSE.TXT",
        }

    def test_mismatch_writes_nothing(self, tmp_test_dir: Path, wix_zip: bytes):
        """Test that a failed integrity check happens before extraction."""
        dest = tmp_test_dir / "wix"
        with requests_mock.Mocker() as m:
            m.get(URL, content=wix_zip)
            with pytest.raises(ArchiveIntegrityError):
                acquire(URL, "00" * 32, dest)

        assert not dest.exists()

    def test_network_failure_is_acquire_error(self, tmp_test_dir: Path):
        with requests_mock.Mocker() as m:
            m.get(URL, exc=requests.exceptions.ConnectionError)
            with pytest.raises(AcquireError):
                acquire(URL, "00" * 32, tmp_test_dir / "wix")


class TestEnsureToolchain:
    """Tests for ensure_toolchain()."""

    def test_reuses_complete_cache(self, tmp_test_dir: Path):
        """Test that a complete cache is used without downloading."""
        for name in TOOL_NAMES.values():
            (tmp_test_dir / name).write_bytes(b"x")

        with patch("wixpack.toolchain.acquire") as mock_acquire:
            inst = ensure_toolchain(tmp_test_dir)

        mock_acquire.assert_not_called()
        assert inst.root == tmp_test_dir

    def test_acquires_when_cache_empty(self, tmp_test_dir: Path, wix_zip: bytes):
        dest = tmp_test_dir / "cache"
        with requests_mock.Mocker() as m:
            m.get(URL, content=wix_zip)
            inst = ensure_toolchain(dest, url=URL, expected_sha256=sha256_hex(wix_zip))

        assert inst.is_complete()

    def test_incomplete_archive_raises(self, tmp_test_dir: Path, make_zip):
        """Test that an archive without all tools is reported."""
        data = make_zip({"heat.exe": b"heat"})
        with requests_mock.Mocker() as m:
            m.get(URL, content=data)
            with pytest.raises(ExtractionError, match="candle.exe, light.exe"):
                ensure_toolchain(
                    tmp_test_dir / "cache", url=URL, expected_sha256=sha256_hex(data)
                )

    def test_default_pin(self):
        """Test that the default pin is the WiX 3.11.1 binaries archive."""
        assert WIX_URL.endswith("wix311-binaries.zip")
        assert len(WIX_SHA256) == 64
