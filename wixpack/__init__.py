"""
wixpack - MSI packaging with the WiX Toolset

A Python-based CLI tool that turns a directory of compiled application files
into a Windows Installer (.msi) package using the WiX v3 toolchain.

wixpack provides:
  - Pinned, integrity-verified acquisition of the WiX v3 binaries
  - main.wxs generation from a placeholder template
  - A Harvest -> Compile -> Link pipeline over heat, candle and light
  - Declarative YAML project configuration
  - Optional download of the VC++ redistributable

Quick Start
-----------
Build the installer described by a project file:

    $ wixpack build wixpack.yaml

Render main.wxs only:

    $ wixpack render wixpack.yaml --out main.wxs

For full CLI documentation:

    $ wixpack --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    Project-level orchestration functions.
config : package
    YAML configuration loading and merging.
pipeline : module
    Build state machine (Preparing -> Harvesting -> Compiling -> Linking).
toolchain : module
    WiX toolchain download, verification and extraction.
manifest : module
    main.wxs template rendering.
stage : module
    External tool invocation with streamed output.

Public API
----------
    from wixpack.core import build_project
    from wixpack.pipeline import build_installer
    from wixpack.toolchain import ensure_toolchain
    from wixpack.manifest import render
    from wixpack.integrity import verify

Project Information
-------------------
License: Apache-2.0
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"
__description__ = "wixpack - MSI packaging with the WiX Toolset"

# Re-export commonly used functions for convenience
from wixpack.config import load_effective_config
from wixpack.core import build_project, render_project_manifest
from wixpack.integrity import verify
from wixpack.manifest import PackageMetadata, render
from wixpack.pipeline import PipelineState, build_installer
from wixpack.toolchain import ToolchainInstallation, ensure_toolchain

__all__ = [
    "__version__",
    "__license__",
    "__description__",
    "build_project",
    "render_project_manifest",
    "build_installer",
    "load_effective_config",
    "ensure_toolchain",
    "verify",
    "render",
    "PackageMetadata",
    "PipelineState",
    "ToolchainInstallation",
]
