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

"""MSI build pipeline for wixpack.

This module sequences the WiX tools to turn a directory of compiled
application files into a single .msi:

    Preparing -> Harvesting -> Compiling -> Linking -> Done

Any failure ends the run with PipelineError naming the state that failed.
The pipeline is strictly sequential and non-resumable; a failed build is
retried by calling build_installer() again.

Private Helpers:
    - _check_build_dir_placement: Keep the build directory apart from the source
    - _prepare_build_directory: Create a fresh build directory
    - _remove_stale_artifact: Delete a previous artifact at the output path
    - _harvest_stage / _compile_stage / _link_stage: Stage descriptors

Design Principles:
    - The toolchain is an explicit ToolchainInstallation value
    - Tool exit status is the sole success contract
    - The build directory is owned exclusively by one run
    - No artifact from a previous run survives at the output path

Example:
    from pathlib import Path
    from wixpack.manifest import PackageMetadata
    from wixpack.pipeline import build_installer

    result = build_installer(
        Path("target/release"),
        PackageMetadata("My App", "Example Corp", "1.2.3", upgrade_code),
        Path("dist/my-app-1.2.3-x64.msi"),
    )
    print(result.artifact_path)
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
import re
import shutil

from wixpack.exceptions import ConfigError, PipelineError, WixpackError
from wixpack.logging import Logger, get_global_logger, tool_output_sink
from wixpack.manifest import (
    ManifestContext,
    PackageMetadata,
    load_template,
    render_to_file,
)
from wixpack.results import BuildResult
from wixpack.stage import Stage, run_stage
from wixpack.toolchain import (
    DEFAULT_CACHE_DIR,
    WIX_SHA256,
    WIX_URL,
    ToolchainInstallation,
    ensure_toolchain,
)

SUPPORTED_PLATFORMS = ("x64", "x86")

MANIFEST_NAME = "main.wxs"
HARVEST_NAME = "appdir.wxs"


class PipelineState(Enum):
    """Pipeline states. A failure is reported as PipelineError.stage."""

    PREPARING = "Preparing"
    HARVESTING = "Harvesting"
    COMPILING = "Compiling"
    LINKING = "Linking"
    DONE = "Done"


def slugify(name: str) -> str:
    """Turn a product name into a file-system friendly identifier.

    Example:
        >>> slugify("My App (Beta)")
        'my-app-beta'
    """
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "app"


def _check_build_dir_placement(source_dir: Path, build_dir: Path) -> None:
    if source_dir.is_relative_to(build_dir):
        raise ConfigError(
            f"Build directory {build_dir} contains the source directory "
            f"{source_dir}; it would be deleted when the build directory is reset"
        )
    if build_dir.is_relative_to(source_dir):
        raise ConfigError(
            f"Build directory {build_dir} is inside the source directory "
            f"{source_dir}; intermediate files would be harvested"
        )


def _prepare_build_directory(build_dir: Path, logger: Logger) -> Path:
    if build_dir.exists():
        logger.verbose("BUILD", f"Removing existing build directory: {build_dir}")
        shutil.rmtree(build_dir)

    build_dir.mkdir(parents=True, exist_ok=True)
    logger.verbose("BUILD", f"Created build directory: {build_dir}")
    return build_dir


def _remove_stale_artifact(output_path: Path, logger: Logger) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.exists():
        logger.verbose("BUILD", f"Removing previous artifact: {output_path}")
        output_path.unlink()


def _harvest_stage(
    source_dir: Path,
    build_dir: Path,
    platform: str,
    component_group: str,
    directory_ref: str,
    source_dir_var: str,
) -> Stage:
    return Stage(
        name=PipelineState.HARVESTING.value,
        tool="harvest",
        args=(
            "dir",
            str(source_dir),
            "-platform",
            platform,
            "-cg",
            component_group,
            "-dr",
            directory_ref,
            "-gg",
            "-srd",
            "-out",
            HARVEST_NAME,
            "-var",
            f"var.{source_dir_var}",
        ),
        working_dir=build_dir,
        outputs=(build_dir / HARVEST_NAME,),
    )


def _compile_stage(
    source_dir: Path, build_dir: Path, platform: str, source_dir_var: str
) -> Stage:
    sources = (MANIFEST_NAME, HARVEST_NAME)
    define = f"-d{source_dir_var}={source_dir}"
    return Stage(
        name=PipelineState.COMPILING.value,
        tool="compile",
        args=("-arch", platform, define, *sources),
        working_dir=build_dir,
        outputs=tuple(build_dir / f"{Path(s).stem}.wixobj" for s in sources),
    )


def _link_stage(objects: tuple[Path, ...], build_dir: Path, output_path: Path) -> Stage:
    return Stage(
        name=PipelineState.LINKING.value,
        tool="link",
        args=("-o", str(output_path), *(obj.name for obj in objects)),
        working_dir=build_dir,
        outputs=(output_path,),
    )


def _run(stage: Stage, toolchain: ToolchainInstallation, logger: Logger) -> None:
    tool_path = toolchain.tool_path(stage.tool)
    logger.verbose("BUILD", f"Running: {tool_path.name} {' '.join(stage.args)}")
    sink = tool_output_sink(logger, tool_path.name)
    run_stage(tool_path, stage.args, stage.working_dir, sink)


def build_installer(
    source_dir: Path,
    metadata: PackageMetadata,
    output_path: Path,
    *,
    toolchain: ToolchainInstallation | None = None,
    toolchain_dir: Path | None = None,
    toolchain_url: str = WIX_URL,
    toolchain_sha256: str = WIX_SHA256,
    build_dir: Path | None = None,
    template_source: str | None = None,
    platform: str = "x64",
    component_group: str = "AppFiles",
    directory_ref: str = "APPLICATIONFOLDER",
    logger: Logger | None = None,
) -> BuildResult:
    """Build an MSI from a directory of application files.

    Steps:

    1. Preparing: obtain the WiX toolchain, create a fresh build directory,
       remove any previous artifact at output_path, render main.wxs
    2. Harvesting: heat.exe scans source_dir into appdir.wxs
    3. Compiling: candle.exe compiles main.wxs and appdir.wxs
    4. Linking: light.exe links the .wixobj files into output_path
    5. Done

    Args:
        source_dir: Directory containing the files to package.
        metadata: Product metadata.
        output_path: Where the .msi is written.
        toolchain: Installation to use as-is. If None, the cache in
            toolchain_dir is reused or populated.
        toolchain_dir: Toolchain cache directory.
            Default: cache/wix/<version>
        toolchain_url: Archive URL used when the cache must be populated.
        toolchain_sha256: Expected SHA-256 of that archive.
        build_dir: Working directory for intermediate files; removed and
            recreated. Default: builds/<product-slug>/<version>
        template_source: main.wxs template text. Default: packaged template.
        platform: "x64" or "x86".
        component_group: Component group id emitted by the harvest stage.
        directory_ref: Directory id the harvested files install under.
        logger: Logger for progress output. Default: global logger.

    Returns:
        BuildResult with state PipelineState.DONE.

    Raises:
        PipelineError: If any state fails. `stage` is the failing state and
            `cause` the underlying WixpackError or OSError. Later stages are
            not run.
    """
    if logger is None:
        logger = get_global_logger()

    source_dir = Path(source_dir).resolve()
    output_path = Path(output_path).resolve()
    if build_dir is None:
        build_dir = Path("builds") / slugify(metadata.name) / metadata.version
    build_dir = Path(build_dir).resolve()

    state = PipelineState.PREPARING
    try:
        logger.step(1, 5, "Preparing...")
        if platform not in SUPPORTED_PLATFORMS:
            raise ConfigError(
                f"Unsupported platform: {platform!r}. "
                f"Supported: {', '.join(SUPPORTED_PLATFORMS)}"
            )
        if not source_dir.is_dir():
            raise ConfigError(f"Source directory not found: {source_dir}")
        _check_build_dir_placement(source_dir, build_dir)

        if toolchain is None:
            toolchain = ensure_toolchain(
                toolchain_dir or DEFAULT_CACHE_DIR,
                url=toolchain_url,
                expected_sha256=toolchain_sha256,
                logger=logger,
            )
        logger.verbose("BUILD", f"Using WiX Toolset: {toolchain.root}")

        _prepare_build_directory(build_dir, logger)
        _remove_stale_artifact(output_path, logger)

        if template_source is None:
            template_source = load_template()
        context = ManifestContext.from_metadata(
            metadata,
            source_dir,
            platform=platform,
            component_group=component_group,
            directory_ref=directory_ref,
        )
        manifest_path = render_to_file(
            template_source, context, build_dir / MANIFEST_NAME
        )
        logger.verbose("BUILD", f"[OK] Rendered {manifest_path.name}")

        state = PipelineState.HARVESTING
        logger.step(2, 5, "Harvesting application files...")
        harvest = _harvest_stage(
            source_dir,
            build_dir,
            platform,
            component_group,
            directory_ref,
            context.source_dir_var,
        )
        _run(harvest, toolchain, logger)

        state = PipelineState.COMPILING
        logger.step(3, 5, "Compiling WiX sources...")
        compile_ = _compile_stage(
            source_dir, build_dir, platform, context.source_dir_var
        )
        _run(compile_, toolchain, logger)

        state = PipelineState.LINKING
        logger.step(4, 5, "Linking installer...")
        _run(_link_stage(compile_.outputs, build_dir, output_path), toolchain, logger)
    except (WixpackError, OSError) as err:
        logger.verbose("BUILD", f"[FAILED] {state.value}: {err}")
        raise PipelineError(state, err) from err

    logger.step(5, 5, "Done")
    logger.verbose("BUILD", f"[OK] Installer created: {output_path}")

    return BuildResult(
        artifact_path=output_path,
        state=PipelineState.DONE,
        build_dir=build_dir,
        manifest_path=manifest_path,
        toolchain_root=toolchain.root,
        product_name=metadata.name,
        version=metadata.version,
        platform=platform,
    )
