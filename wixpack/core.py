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

"""Project-level orchestration for wixpack.

These functions connect a project file to the build pipeline: load the
configuration, derive PackageMetadata, and hand everything to
build_installer() or the manifest renderer.

Example:
    Programmatic usage:
        ```python
        from pathlib import Path
        from wixpack.core import build_project

        result = build_project(Path("wixpack.yaml"))
        print(f"MSI: {result.artifact_path}")
        ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from wixpack.config import load_effective_config, metadata_from_config
from wixpack.config.loader import DEFAULT_CONFIG
from wixpack.exceptions import ConfigError
from wixpack.logging import Logger, get_global_logger
from wixpack.manifest import ManifestContext, load_template, render_to_file
from wixpack.pipeline import build_installer
from wixpack.results import BuildResult
from wixpack.toolchain import ToolchainInstallation, ensure_toolchain


def _template_from_config(config: dict[str, Any]) -> str:
    template = config["build"].get("template")
    try:
        return load_template(Path(template) if template else None)
    except OSError as err:
        raise ConfigError(f"Cannot read build.template: {err}") from err


def fetch_toolchain(
    config: dict[str, Any] | None = None,
    cache_dir: Path | None = None,
    logger: Logger | None = None,
) -> ToolchainInstallation:
    """Reuse or acquire the WiX toolchain named by a configuration.

    Args:
        config: Merged configuration; its toolchain section supplies url,
            sha256 and cache_dir. Default: built-in pins.
        cache_dir: Overrides toolchain.cache_dir.
        logger: Logger for progress output. Default: global logger.

    Raises:
        AcquireError: If the toolchain cannot be acquired.
    """
    toolchain_cfg = (config or DEFAULT_CONFIG)["toolchain"]
    return ensure_toolchain(
        cache_dir or Path(toolchain_cfg["cache_dir"]),
        url=toolchain_cfg["url"],
        expected_sha256=toolchain_cfg["sha256"],
        logger=logger,
    )


def build_project(
    project_path: Path,
    *,
    output_path: Path | None = None,
    toolchain_dir: Path | None = None,
    build_dir: Path | None = None,
    logger: Logger | None = None,
) -> BuildResult:
    """Build the MSI described by a project file.

    Args:
        project_path: Path to the project YAML file.
        output_path: Overrides package.output.
        toolchain_dir: Overrides toolchain.cache_dir.
        build_dir: Overrides build.build_dir.
        logger: Logger for progress output. Default: global logger.

    Returns:
        BuildResult from build_installer().

    Raises:
        ConfigError: If the project file is invalid.
        PipelineError: If any build state fails.
    """
    if logger is None:
        logger = get_global_logger()

    config = load_effective_config(project_path, logger=logger)
    metadata = metadata_from_config(config)
    package = config["package"]
    build = config["build"]

    toolchain_cfg = config["toolchain"]
    if build_dir is None and build.get("build_dir"):
        build_dir = Path(build["build_dir"])

    return build_installer(
        Path(package["source_dir"]),
        metadata,
        output_path or Path(package["output"]),
        toolchain_dir=toolchain_dir or Path(toolchain_cfg["cache_dir"]),
        toolchain_url=toolchain_cfg["url"],
        toolchain_sha256=toolchain_cfg["sha256"],
        build_dir=build_dir,
        template_source=_template_from_config(config),
        platform=build["platform"],
        component_group=build["component_group"],
        directory_ref=build["directory_ref"],
        logger=logger,
    )


def render_project_manifest(
    project_path: Path, dest: Path, logger: Logger | None = None
) -> Path:
    """Render main.wxs for a project without running any WiX tool.

    Returns:
        dest.

    Raises:
        ConfigError: If the project file is invalid.
        RenderError: If the template cannot be rendered (nothing is written).
        OSError: If dest cannot be written.
    """
    if logger is None:
        logger = get_global_logger()

    config = load_effective_config(project_path, logger=logger)
    build = config["build"]
    context = ManifestContext.from_metadata(
        metadata_from_config(config),
        Path(config["package"]["source_dir"]),
        platform=build["platform"],
        component_group=build["component_group"],
        directory_ref=build["directory_ref"],
    )
    render_to_file(_template_from_config(config), context, dest)
    logger.verbose("RENDER", f"[OK] Wrote {dest}")
    return dest
