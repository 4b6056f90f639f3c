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

"""Command-line interface for wixpack.

Commands:

    build: Build an MSI from a project file
    render: Render main.wxs for a project file
    fetch-toolchain: Download and cache the pinned WiX toolchain
    fetch-redist: Download the VC++ redistributable

Example:
    Build an installer:
        ```bash
        $ wixpack build wixpack.yaml
        ```

    Render the manifest only:
        ```bash
        $ wixpack render wixpack.yaml --out build/main.wxs
        ```

    Pre-populate the toolchain cache:
        ```bash
        $ wixpack fetch-toolchain --dest cache/wix/3.11.1
        ```

    Enable verbose output (streams WiX tool output):
        ```bash
        $ wixpack build wixpack.yaml --verbose
        ```

Exit Codes:

- 0: Success
- 1: Error (configuration, download, render or build failure)

Note:
    Each command has its own handler function (cmd_<command>).
    Verbose mode shows full tracebacks on errors for debugging.
    Debug mode implies verbose mode and shows detailed configuration dumps.
"""

from __future__ import annotations

import argparse
from importlib.metadata import version
from pathlib import Path
import sys
import traceback

from wixpack.core import build_project, fetch_toolchain, render_project_manifest
from wixpack.exceptions import PipelineError, StageError, WixpackError
from wixpack.logging import get_logger, set_global_logger
from wixpack.redist import VC_REDIST, fetch_vc_redist


def _configure_logger(args: argparse.Namespace) -> None:
    set_global_logger(get_logger(verbose=args.verbose, debug=args.debug))


def _report_error(err: WixpackError | OSError, args: argparse.Namespace) -> int:
    print(f"Error: {err}")
    if isinstance(err, PipelineError):
        print(f"Failed stage: {err.stage.value}")
        cause = err.cause
        if isinstance(cause, StageError) and cause.output:
            print(f"Last output from {cause.tool}:")
            for line in cause.output:
                print(f"  {line}")
    if args.verbose or args.debug:
        traceback.print_exc()
    return 1


def cmd_build(args: argparse.Namespace) -> int:
    """Handler for 'wixpack build' command.

    Loads the project file, acquires the WiX toolchain if it is not cached,
    renders main.wxs and runs heat, candle and light in order.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    _configure_logger(args)

    project_path = Path(args.project).resolve()
    if not project_path.exists():
        print(f"Error: Project file not found: {project_path}")
        return 1

    print(f"Building installer for project: {project_path}")
    print()

    try:
        result = build_project(
            project_path,
            output_path=Path(args.output) if args.output else None,
            toolchain_dir=Path(args.toolchain_dir) if args.toolchain_dir else None,
            build_dir=Path(args.build_dir) if args.build_dir else None,
        )
    except WixpackError as err:
        return _report_error(err, args)

    print("=" * 70)
    print("BUILD RESULTS")
    print("=" * 70)
    print(f"Product:         {result.product_name}")
    print(f"Version:         {result.version}")
    print(f"Platform:        {result.platform}")
    print(f"Build Directory: {result.build_dir}")
    print(f"Toolchain:       {result.toolchain_root}")
    print(f"Installer:       {result.artifact_path}")
    print(f"Status:          {result.state.value}")
    print("=" * 70)
    print()
    print("[SUCCESS] Installer built successfully!")

    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Handler for 'wixpack render' command.

    Renders main.wxs for a project without touching the toolchain.
    """
    _configure_logger(args)

    project_path = Path(args.project).resolve()
    if not project_path.exists():
        print(f"Error: Project file not found: {project_path}")
        return 1

    try:
        dest = render_project_manifest(project_path, Path(args.out).resolve())
    except (WixpackError, OSError) as err:
        return _report_error(err, args)

    print(f"[SUCCESS] Wrote {dest}")
    return 0


def cmd_fetch_toolchain(args: argparse.Namespace) -> int:
    """Handler for 'wixpack fetch-toolchain' command."""
    _configure_logger(args)

    try:
        installation = fetch_toolchain(
            cache_dir=Path(args.dest) if args.dest else None
        )
    except (WixpackError, OSError) as err:
        return _report_error(err, args)

    print("=" * 70)
    print("TOOLCHAIN")
    print("=" * 70)
    print(f"Root:            {installation.root}")
    print(f"heat:            {installation.heat}")
    print(f"candle:          {installation.candle}")
    print(f"light:           {installation.light}")
    print("=" * 70)
    print()
    print("[SUCCESS] WiX Toolset ready!")
    return 0


def cmd_fetch_redist(args: argparse.Namespace) -> int:
    """Handler for 'wixpack fetch-redist' command."""
    _configure_logger(args)

    try:
        path = fetch_vc_redist(args.arch, Path(args.dest))
    except (WixpackError, OSError) as err:
        return _report_error(err, args)

    print(f"[SUCCESS] Saved {path}")
    return 0


def _add_verbosity_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress, tool output and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wixpack",
        description="wixpack - build Windows Installer packages with WiX v3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"wixpack {version('wixpack')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'build' command
    parser_build = subparsers.add_parser(
        "build",
        help="Build an MSI from a project file",
        description="Harvest, compile and link the files named by a project into an MSI.",
    )
    parser_build.add_argument("project", help="Path to the project YAML file")
    parser_build.add_argument(
        "--output",
        default=None,
        help="Path of the .msi to write (default: from config or dist/)",
    )
    parser_build.add_argument(
        "--toolchain-dir",
        default=None,
        help="WiX toolchain cache directory (default: from config or cache/wix/)",
    )
    parser_build.add_argument(
        "--build-dir",
        default=None,
        help="Working directory for intermediate files (default: builds/)",
    )
    _add_verbosity_flags(parser_build)
    parser_build.set_defaults(func=cmd_build)

    # 'render' command
    parser_render = subparsers.add_parser(
        "render",
        help="Render main.wxs for a project file",
        description="Render the WiX manifest template without running any WiX tool.",
    )
    parser_render.add_argument("project", help="Path to the project YAML file")
    parser_render.add_argument(
        "--out",
        default="main.wxs",
        help="Output path for the rendered manifest (default: ./main.wxs)",
    )
    _add_verbosity_flags(parser_render)
    parser_render.set_defaults(func=cmd_render)

    # 'fetch-toolchain' command
    parser_toolchain = subparsers.add_parser(
        "fetch-toolchain",
        help="Download and cache the pinned WiX toolchain",
        description="Download, verify and extract the WiX v3 binaries.",
    )
    parser_toolchain.add_argument(
        "--dest",
        default=None,
        help="Cache directory (default: cache/wix/<version>)",
    )
    _add_verbosity_flags(parser_toolchain)
    parser_toolchain.set_defaults(func=cmd_fetch_toolchain)

    # 'fetch-redist' command
    parser_redist = subparsers.add_parser(
        "fetch-redist",
        help="Download the VC++ redistributable",
        description="Download and verify vc_redist.<arch>.exe.",
    )
    parser_redist.add_argument(
        "--arch",
        choices=sorted(VC_REDIST),
        default="x64",
        help="Target architecture (default: x64)",
    )
    parser_redist.add_argument(
        "--dest",
        default=".",
        help="Output directory (default: current directory)",
    )
    _add_verbosity_flags(parser_redist)
    parser_redist.set_defaults(func=cmd_fetch_redist)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the wixpack CLI.

    This function is registered as the 'wixpack' console script in
    pyproject.toml.
    """
    args = build_parser().parse_args(argv)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
