# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""WiX Toolset acquisition for wixpack.

This module downloads the pinned WiX v3 binaries archive, verifies it
against its SHA-256 digest, and extracts it into a cache directory that can
be shared read-only between builds.

Key Features:

- **Pinned toolchain** - WIX_URL and WIX_SHA256 identify exactly one
  archive. Upgrading WiX is a code (or config) change, never implicit.
- **Verify before extract** - Bytes that fail verification are never
  written to disk.
- **Entry-level atomic extraction** - Each archive entry is written to a
  .part file and renamed into place. There is no global rollback; a
  partially extracted toolchain is detected by ToolchainInstallation.
- **Idempotent** - Re-acquiring into a populated directory overwrites
  existing files and produces the same tree.
- **No retries** - Transport failures surface immediately as NetworkError.

Example:
    Reuse or populate the default cache:
        ```python
        from pathlib import Path
        from wixpack.toolchain import ensure_toolchain

        toolchain = ensure_toolchain(Path("cache/wix/3.11.1"))
        print(toolchain.candle)
        ```
"""

from __future__ import annotations

from dataclasses import dataclass
import io
from pathlib import Path, PurePosixPath
import shutil
import zipfile

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from wixpack.exceptions import (
    ArchiveIntegrityError,
    ExtractionError,
    IntegrityError,
    NetworkError,
)
from wixpack.integrity import verify
from wixpack.logging import Logger, get_global_logger

WIX_VERSION = "3.11.1"
WIX_URL = (
    "https://github.com/wixtoolset/wix3/releases/download/"
    "wix3111rtm/wix311-binaries.zip"
)
WIX_SHA256 = "37f0a533b0978a454efb5dc3bd3598becf9660aaf4287e55bf68ca6b527d051d"

DEFAULT_CACHE_DIR = Path("cache") / "wix" / WIX_VERSION

# Pipeline role -> executable name inside the WiX binaries archive.
TOOL_NAMES = {
    "harvest": "heat.exe",
    "compile": "candle.exe",
    "link": "light.exe",
}

DEFAULT_TIMEOUT = 300
DEFAULT_CHUNK = 1024 * 1024


@dataclass(frozen=True)
class ToolchainInstallation:
    """A directory containing the WiX harvest, compile and link tools.

    Instances are plain values: the orchestrator receives one explicitly,
    so tests can point it at a directory of fake tools.

    Attributes:
        root: Directory holding heat.exe, candle.exe and light.exe.
    """

    root: Path

    def tool_path(self, role: str) -> Path:
        """Return the executable path for a pipeline role.

        Args:
            role: One of "harvest", "compile", "link".

        Raises:
            KeyError: If role is unknown.
        """
        return self.root / TOOL_NAMES[role]

    @property
    def heat(self) -> Path:
        return self.tool_path("harvest")

    @property
    def candle(self) -> Path:
        return self.tool_path("compile")

    @property
    def light(self) -> Path:
        return self.tool_path("link")

    def missing_tools(self) -> list[str]:
        """Return the names of required tools that are not present."""
        return [
            name for name in TOOL_NAMES.values() if not (self.root / name).is_file()
        ]

    def is_complete(self) -> bool:
        return not self.missing_tools()


def make_session() -> requests.Session:
    """Create a requests.Session for toolchain downloads.

    Sets a User-Agent and mounts adapters with retries disabled: a failed
    fetch is a build-environment problem to report, not to mask.
    """
    s = requests.Session()
    retries = Retry(total=0, raise_on_status=False)
    s.headers.update({"User-Agent": "wixpack/0.1"})
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


def fetch_archive(
    url: str, timeout: int = DEFAULT_TIMEOUT, logger: Logger | None = None
) -> bytes:
    """Download the full response body of a single GET request.

    Args:
        url: Source URL.
        timeout: Per-request timeout (seconds).
        logger: Logger for progress output. Default: global logger.

    Returns:
        The response body.

    Raises:
        NetworkError: On transport failure or non-2xx status.
    """
    if logger is None:
        logger = get_global_logger()

    logger.verbose("HTTP", f"GET {url}")

    try:
        with make_session() as session:
            resp = session.get(url, stream=True, timeout=timeout)
            try:
                resp.raise_for_status()
                buf = io.BytesIO()
                for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK):
                    if chunk:
                        buf.write(chunk)
            finally:
                resp.close()
    except requests.RequestException as err:
        raise NetworkError(f"download failed for {url}: {err}") from err

    data = buf.getvalue()
    logger.verbose("HTTP", f"Response: {resp.status_code} ({len(data)} bytes)")
    return data


def download_and_verify(
    url: str,
    expected_sha256: str,
    timeout: int = DEFAULT_TIMEOUT,
    logger: Logger | None = None,
) -> bytes:
    """Download url and verify the body against expected_sha256.

    Raises:
        NetworkError: If the download fails.
        ArchiveIntegrityError: If the digest check fails.
    """
    if logger is None:
        logger = get_global_logger()

    data = fetch_archive(url, timeout=timeout, logger=logger)

    logger.verbose("HTTP", "Validating SHA-256...")
    try:
        digest = verify(data, expected_sha256)
    except IntegrityError as err:
        raise ArchiveIntegrityError(f"integrity check failed for {url}: {err}") from err

    logger.verbose("HTTP", f"[OK] SHA-256: {digest}")
    return data


def _entry_target(dest_dir: Path, name: str) -> Path:
    """Map an archive entry name to a path under dest_dir.

    Raises:
        ExtractionError: If the entry is absolute or escapes dest_dir.
    """
    entry = PurePosixPath(name.replace("\\", "/"))
    if (
        not entry.parts
        or entry.is_absolute()
        or ".." in entry.parts
        or ":" in entry.parts[0]
    ):
        raise ExtractionError(f"archive entry escapes destination: {name!r}")
    return dest_dir.joinpath(*entry.parts)


def extract_archive(
    data: bytes, dest_dir: Path, logger: Logger | None = None
) -> list[Path]:
    """Extract a zip archive entry by entry into dest_dir.

    Parent directories are created as needed and entry paths are preserved.
    Each file is written to a sibling .part file and renamed into place, so
    an individual entry is either absent, the previous version, or complete.

    Args:
        data: Zip archive bytes. Must already be verified.
        dest_dir: Extraction root (created if missing).
        logger: Logger for progress output. Default: global logger.

    Returns:
        Paths of the extracted files, in archive order.

    Raises:
        ExtractionError: If the archive is corrupt, an entry cannot be read
            or written, or an entry would land outside dest_dir.
    """
    if logger is None:
        logger = get_global_logger()

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as err:
        raise ExtractionError(f"invalid zip archive: {err}") from err

    extracted: list[Path] = []
    with archive:
        for info in archive.infolist():
            target = _entry_target(dest_dir, info.filename)

            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                tmp = target.with_name(target.name + ".part")
                with archive.open(info) as src, tmp.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
                tmp.replace(target)
            except (OSError, zipfile.BadZipFile) as err:
                raise ExtractionError(
                    f"failed to extract {info.filename!r}: {err}"
                ) from err

            logger.debug("ZIP", f"  {info.filename}")
            extracted.append(target)

    return extracted


def acquire(
    url: str,
    expected_sha256: str,
    dest_dir: Path,
    timeout: int = DEFAULT_TIMEOUT,
    logger: Logger | None = None,
) -> ToolchainInstallation:
    """Download, verify and extract a toolchain archive into dest_dir.

    The returned installation is not checked for completeness; callers
    that need the tools use ToolchainInstallation.missing_tools() or
    ensure_toolchain().

    Raises:
        NetworkError: If the download fails.
        ArchiveIntegrityError: If the archive digest does not match.
        ExtractionError: If extraction fails.
    """
    if logger is None:
        logger = get_global_logger()

    logger.verbose("WIX", "Downloading WiX Toolset...")
    data = download_and_verify(url, expected_sha256, timeout=timeout, logger=logger)

    logger.verbose("WIX", f"Extracting to: {dest_dir}")
    dest_dir.mkdir(parents=True, exist_ok=True)
    files = extract_archive(data, dest_dir, logger=logger)
    logger.verbose("WIX", f"[OK] Extracted {len(files)} file(s)")

    return ToolchainInstallation(dest_dir)


def ensure_toolchain(
    cache_dir: Path = DEFAULT_CACHE_DIR,
    url: str = WIX_URL,
    expected_sha256: str = WIX_SHA256,
    logger: Logger | None = None,
) -> ToolchainInstallation:
    """Return a complete WiX installation, acquiring it if necessary.

    Args:
        cache_dir: Directory for the extracted toolchain.
        url: Archive URL. Default: WIX_URL.
        expected_sha256: Archive digest. Default: WIX_SHA256.
        logger: Logger for progress output. Default: global logger.

    Returns:
        A ToolchainInstallation whose tools all exist.

    Raises:
        AcquireError: If acquisition fails or the extracted tree lacks a
            required tool.
    """
    if logger is None:
        logger = get_global_logger()

    installation = ToolchainInstallation(cache_dir)
    if installation.is_complete():
        logger.verbose("WIX", f"Using cached WiX Toolset: {cache_dir}")
        return installation

    installation = acquire(url, expected_sha256, cache_dir, logger=logger)

    missing = installation.missing_tools()
    if missing:
        raise ExtractionError(
            f"WiX Toolset incomplete after extraction in {cache_dir}\n"
            f"Missing: {', '.join(missing)}"
        )

    return installation
