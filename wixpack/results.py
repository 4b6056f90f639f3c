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

"""Public API return types for wixpack.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Note:
    Only public API return types belong in this module. Domain types (like
    PackageMetadata or ToolchainInstallation) stay with their related logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wixpack.pipeline import PipelineState


@dataclass(frozen=True)
class BuildResult:
    """Result from building an MSI.

    Attributes:
        artifact_path: Path to the produced .msi file.
        state: Final pipeline state (always PipelineState.DONE).
        build_dir: Directory holding main.wxs, appdir.wxs and .wixobj files.
        manifest_path: Path to the rendered main.wxs.
        toolchain_root: WiX installation used for the build.
        product_name: Product name.
        version: Product version.
        platform: Target platform.
    """

    artifact_path: Path
    state: PipelineState
    build_dir: Path
    manifest_path: Path
    toolchain_root: Path
    product_name: str
    version: str
    platform: str
