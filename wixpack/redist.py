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

"""Visual C++ redistributable download for wixpack.

Applications built with MSVC often need the VC++ runtime next to them. This
module fetches the pinned vc_redist installer for an architecture, verifies
it with the same gate as the WiX archive, and writes it into a directory
(typically the directory about to be harvested).

Example:
    from pathlib import Path
    from wixpack.redist import fetch_vc_redist

    path = fetch_vc_redist("x64", Path("target/release"))
    print(path)  # target/release/vc_redist.x64.exe
"""

from __future__ import annotations

from pathlib import Path

from wixpack.exceptions import ConfigError
from wixpack.logging import Logger, get_global_logger
from wixpack.toolchain import download_and_verify

# arch -> (url, sha256)
VC_REDIST = {
    "x86": (
        "https://download.visualstudio.microsoft.com/download/pr/"
        "c8edbb87-c7ec-4500-a461-71e8912d25e9/99ba493d660597490cbb8b3211d2cae4/"
        "vc_redist.x86.exe",
        "3a43e8a55a3f3e4b73d01872c16d47a19dd825756784f4580187309e7d1fcb74",
    ),
    "x64": (
        "https://download.visualstudio.microsoft.com/download/pr/"
        "9e04d214-5a9d-4515-9960-3d71398d98c3/1e1e62ab57bbb4bf5199e8ce88f040be/"
        "vc_redist.x64.exe",
        "d6cd2445f68815fe02489fafe0127819e44851e26dfbe702612bc0d223cbbc2b",
    ),
}


def fetch_vc_redist(
    arch: str, dest_dir: Path, logger: Logger | None = None
) -> Path:
    """Download and verify vc_redist.<arch>.exe into dest_dir.

    Args:
        arch: "x86" or "x64".
        dest_dir: Output directory (created if missing).
        logger: Logger for progress output. Default: global logger.

    Returns:
        Path to the written installer.

    Raises:
        ConfigError: If arch is not supported.
        NetworkError: If the download fails.
        ArchiveIntegrityError: If the digest does not match.
        OSError: If dest_dir cannot be written.
    """
    if logger is None:
        logger = get_global_logger()

    if arch not in VC_REDIST:
        raise ConfigError(
            f"Unsupported VC++ redistributable arch: {arch!r}. "
            f"Supported: {', '.join(sorted(VC_REDIST))}"
        )

    url, sha256 = VC_REDIST[arch]
    logger.verbose("REDIST", f"Downloading VC++ redistributable ({arch})...")
    data = download_and_verify(url, sha256, logger=logger)

    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / f"vc_redist.{arch}.exe"
    tmp = target.with_name(target.name + ".part")
    tmp.write_bytes(data)
    tmp.replace(target)

    logger.verbose("REDIST", f"[OK] Saved: {target}")
    return target
