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

"""Configuration loading and merging for wixpack.

A project is described by a YAML file (conventionally wixpack.yaml) next to
the application it packages. Shared settings such as the toolchain pin or
the manufacturer can live in a defaults file higher up the tree.

Configuration Layers:
    1. **Built-in defaults** (DEFAULT_CONFIG)
       - Pinned WiX toolchain, x64 platform, AppFiles component group

    2. **Shared defaults** (defaults/wixpack.yaml)
       - Found by walking upward from the project file
       - Optional; overrides built-in defaults

    3. **Project file** (wixpack.yaml)
       - Always required; describes the product and its files
       - Overrides all defaults

Merge Behavior:
    - **Dicts**: Recursively merged (keys from overlay override base)
    - **Lists**: Completely replaced (NOT appended/extended)
    - **Scalars**: Overwritten (strings, numbers, booleans)

Path Resolution:
    Relative paths are resolved against the PROJECT FILE location:
    package.source_dir, package.output, build.template.
    build.build_dir and toolchain.cache_dir stay relative to the working
    directory, like any other cache.

Dynamic Injection:
    - package.upgrade_code: uuid5 of manufacturer and name, if absent
    - package.output: dist/<slug>-<version>-<platform>.msi, if absent

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from wixpack.config import load_effective_config, metadata_from_config

        config = load_effective_config(Path("wixpack.yaml"))
        metadata = metadata_from_config(config)
        print(metadata.name)
        ```
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any
import uuid

import yaml

from wixpack.exceptions import ConfigError
from wixpack.logging import Logger, get_global_logger
from wixpack.manifest import PackageMetadata
from wixpack.pipeline import SUPPORTED_PLATFORMS, slugify
from wixpack.toolchain import DEFAULT_CACHE_DIR, WIX_SHA256, WIX_URL

DEFAULTS_FILE_NAME = "wixpack.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "build": {
        "platform": "x64",
        "component_group": "AppFiles",
        "directory_ref": "APPLICATIONFOLDER",
    },
    "toolchain": {
        "url": WIX_URL,
        "sha256": WIX_SHA256,
        "cache_dir": str(DEFAULT_CACHE_DIR),
    },
}

REQUIRED_PACKAGE_FIELDS = ("name", "manufacturer", "version", "source_dir")
MAPPING_SECTIONS = ("package", "build", "toolchain")

# Namespace for upgrade codes derived from manufacturer + product name.
UPGRADE_CODE_NAMESPACE = uuid.UUID("5f1c0d7e-4f5a-4c43-9b3e-6a0f1f7e2c9d")


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """Loads a YAML file and returns the parsed Python object.

    Raises:
        ConfigError: When the file does not exist, cannot be parsed, or is
            empty.
    """
    if not p.exists():
        raise ConfigError(f"file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep-merges two dicts with "overlay wins" semantics.

    - dict + dict -> deep merge
    - list + list -> overlay REPLACES base (not concatenated)
    - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


# -------------------------------
# Defaults discovery
# -------------------------------


def _find_defaults_file(start_dir: Path) -> Path | None:
    """Walks upward from start_dir looking for defaults/wixpack.yaml."""
    for parent in [start_dir] + list(start_dir.parents):
        candidate = parent / "defaults" / DEFAULTS_FILE_NAME
        if candidate.exists():
            return candidate
    return None


# -------------------------------
# Validation, paths and injection
# -------------------------------


def _validate(cfg: dict[str, Any], project_path: Path) -> None:
    package = cfg.get("package")
    if package is None:
        raise ConfigError(f"Missing 'package' section in {project_path}")

    for section in MAPPING_SECTIONS:
        if not isinstance(cfg.get(section), dict):
            raise ConfigError(
                f"'{section}' section must be a mapping in {project_path}, "
                f"got {type(cfg.get(section)).__name__}"
            )

    missing = [
        name for name in REQUIRED_PACKAGE_FIELDS if package.get(name) in (None, "")
    ]
    if missing:
        raise ConfigError(
            f"Missing required field(s) in {project_path}: "
            + ", ".join(f"package.{name}" for name in missing)
        )

    platform = cfg["build"].get("platform")
    if platform not in SUPPORTED_PLATFORMS:
        raise ConfigError(
            f"Unsupported build.platform: {platform!r}. "
            f"Supported: {', '.join(SUPPORTED_PLATFORMS)}"
        )


def _resolve_known_paths(cfg: dict[str, Any], project_dir: Path) -> None:
    """Resolves relative path fields against project_dir. Modifies cfg."""
    for section, key in (
        ("package", "source_dir"),
        ("package", "output"),
        ("build", "template"),
    ):
        raw = cfg[section].get(key)
        if isinstance(raw, str) and raw:
            p = Path(raw)
            if not p.is_absolute():
                cfg[section][key] = str((project_dir / p).resolve())


def _inject_dynamic_values(cfg: dict[str, Any], project_dir: Path) -> None:
    package = cfg["package"]
    # YAML reads "1.2" as a float
    package["version"] = str(package["version"])

    if not package.get("upgrade_code"):
        seed = f"{package['manufacturer']}/{package['name']}"
        package["upgrade_code"] = str(uuid.uuid5(UPGRADE_CODE_NAMESPACE, seed))

    if not package.get("output"):
        platform = cfg["build"]["platform"]
        name = f"{slugify(package['name'])}-{package['version']}-{platform}.msi"
        package["output"] = str((project_dir / "dist" / name).resolve())


# -------------------------------
# Public API
# -------------------------------


def load_effective_config(
    project_path: Path, logger: Logger | None = None
) -> dict[str, Any]:
    """Loads and merges the effective configuration for a project file.

    Steps:
        1. Read project YAML.
        2. Find defaults/wixpack.yaml by scanning upwards.
        3. Merge: built-in -> shared defaults -> project.
        4. Validate required fields and platform.
        5. Resolve known relative paths against the project directory.
        6. Inject dynamic fields (upgrade_code, output).

    Args:
        project_path: Path to the project YAML file.
        logger: Logger for progress output. Default: global logger.

    Returns:
        A merged configuration dict.

    Raises:
        ConfigError: On YAML parse errors, empty or missing files, invalid
            structure, or missing required fields.
    """
    if logger is None:
        logger = get_global_logger()

    project_path = project_path.resolve()
    project_dir = project_path.parent

    logger.verbose("CONFIG", f"Loading project: {project_path}")
    project_obj = _load_yaml_file(project_path)
    if not isinstance(project_obj, dict):
        raise ConfigError(f"top-level YAML must be a mapping (dict): {project_path}")

    merged = copy.deepcopy(DEFAULT_CONFIG)

    defaults_file = _find_defaults_file(project_dir)
    if defaults_file is not None:
        logger.verbose("CONFIG", f"Loading defaults: {defaults_file}")
        defaults_obj = _load_yaml_file(defaults_file)
        if not isinstance(defaults_obj, dict):
            raise ConfigError(
                f"top-level YAML must be a mapping (dict): {defaults_file}"
            )
        merged = _deep_merge_dicts(merged, defaults_obj)

    merged = _deep_merge_dicts(merged, project_obj)
    logger.debug("CONFIG", yaml.safe_dump(merged, sort_keys=False).rstrip())

    _validate(merged, project_path)
    _resolve_known_paths(merged, project_dir)
    _inject_dynamic_values(merged, project_dir)

    return merged


def metadata_from_config(cfg: dict[str, Any]) -> PackageMetadata:
    """Builds PackageMetadata from a merged configuration."""
    package = cfg["package"]
    return PackageMetadata(
        name=str(package["name"]),
        manufacturer=str(package["manufacturer"]),
        version=str(package["version"]),
        upgrade_code=str(package["upgrade_code"]),
        main_executable=package.get("main_executable"),
    )
