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

"""main.wxs generation for wixpack.

This module renders the WiX source manifest by substituting `{{ name }}`
placeholders in a template with values from a ManifestContext.

Private Helpers:
    - _format_xml_value: Format a Python value as escaped XML text
    - _scan_placeholders: Validate the template and list placeholder names

Design Principles:
    - Substitution only: no loops, conditionals or helpers
    - The whole template is validated before any output is produced
    - Values are XML-escaped so the document stays well-formed
    - Rendering never writes partial output to disk

Example:
    from pathlib import Path
    from wixpack.manifest import (
        ManifestContext, PackageMetadata, load_template, render,
    )

    metadata = PackageMetadata(
        name="My App",
        manufacturer="Example Corp",
        version="1.2.3",
        upgrade_code="6f4c7a36-6a4b-4b0e-9d7c-3f8c2a7f0b11",
    )
    context = ManifestContext.from_metadata(metadata, Path("target/release"))
    wxs = render(load_template(), context)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
import re
from typing import Any
from xml.sax.saxutils import escape

from wixpack.exceptions import MalformedTemplateError, MissingKeyError

# {{ name }} on a single line, identifier names only.
_PLACEHOLDER_RE = re.compile(r"\{\{[ \t]*([A-Za-z_][A-Za-z0-9_]*)[ \t]*\}\}")

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}

DEFAULT_TEMPLATE_NAME = "main.wxs"

# Preprocessor variable heat references and candle defines for the source dir
SOURCE_DIR_VAR = "SourceDir"


@dataclass(frozen=True)
class PackageMetadata:
    """Product metadata shown by Windows Installer.

    Attributes:
        name: Product name (also used for the install folder).
        manufacturer: Publisher name.
        version: MSI product version (major.minor.build).
        upgrade_code: Stable GUID identifying the product line.
        main_executable: Optional file name of the application's main binary.
    """

    name: str
    manufacturer: str
    version: str
    upgrade_code: str
    main_executable: str | None = None


@dataclass(frozen=True)
class ManifestContext:
    """Values available to the main.wxs template.

    Attributes:
        source_dir: Directory harvested into the installer.
        product_name: Product name.
        manufacturer: Publisher name.
        version: Product version.
        upgrade_code: Upgrade GUID.
        platform: Target platform ("x64" or "x86").
        component_group: Component group emitted by the harvest stage.
        directory_ref: Directory id the harvested files are installed under.
        source_dir_var: Preprocessor variable holding the source directory.
        main_executable: Optional main binary file name.
        extra: Additional template values (overridden by the fields above).
    """

    source_dir: Path
    product_name: str
    manufacturer: str
    version: str
    upgrade_code: str
    platform: str = "x64"
    component_group: str = "AppFiles"
    directory_ref: str = "APPLICATIONFOLDER"
    source_dir_var: str = SOURCE_DIR_VAR
    main_executable: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_metadata(
        cls,
        metadata: PackageMetadata,
        source_dir: Path,
        *,
        platform: str = "x64",
        component_group: str = "AppFiles",
        directory_ref: str = "APPLICATIONFOLDER",
        extra: dict[str, Any] | None = None,
    ) -> ManifestContext:
        return cls(
            source_dir=source_dir,
            product_name=metadata.name,
            manufacturer=metadata.manufacturer,
            version=metadata.version,
            upgrade_code=metadata.upgrade_code,
            platform=platform,
            component_group=component_group,
            directory_ref=directory_ref,
            main_executable=metadata.main_executable,
            extra=dict(extra or {}),
        )

    @property
    def program_files_dir(self) -> str:
        if self.platform == "x64":
            return "ProgramFiles64Folder"
        return "ProgramFilesFolder"

    def as_mapping(self) -> dict[str, Any]:
        """Return the placeholder name -> value mapping for this context."""
        values: dict[str, Any] = dict(self.extra)
        values.update(
            {
                "source_dir": str(self.source_dir),
                "product_name": self.product_name,
                "manufacturer": self.manufacturer,
                "version": self.version,
                "upgrade_code": self.upgrade_code,
                "platform": self.platform,
                "component_group": self.component_group,
                "directory_ref": self.directory_ref,
                "source_dir_var": self.source_dir_var,
                "program_files_dir": self.program_files_dir,
                "main_executable": self.main_executable,
            }
        )
        return values


def _format_xml_value(value: Any) -> str:
    """Format a Python value as escaped XML text.

    Example:
        >>> _format_xml_value('Tom & "Jerry"')
        'Tom &amp; &quot;Jerry&quot;'
        >>> _format_xml_value(True)
        'yes'
    """
    if isinstance(value, bool):
        return "yes" if value else "no"
    return escape(str(value), _XML_ENTITIES)


def _scan_placeholders(template: str) -> list[str]:
    """Validate template markers and return placeholder names in order.

    Raises:
        MalformedTemplateError: If a line contains a stray "{{" or "}}".
    """
    names: list[str] = []
    for lineno, line in enumerate(template.splitlines(), start=1):
        leftover = _PLACEHOLDER_RE.sub("", line)
        if "{{" in leftover or "}}" in leftover:
            raise MalformedTemplateError(
                f"malformed placeholder on line {lineno}: {line.strip()!r}"
            )
        names.extend(m.group(1) for m in _PLACEHOLDER_RE.finditer(line))
    return names


def render(template_source: str, context: ManifestContext | Mapping[str, Any]) -> str:
    """Render a manifest template.

    Args:
        template_source: Template text with `{{ name }}` placeholders.
        context: ManifestContext or a plain mapping of placeholder values.

    Returns:
        The rendered document.

    Raises:
        MalformedTemplateError: If the template has unbalanced markers.
        MissingKeyError: If a placeholder has no value (absent or None).

    Example:
        >>> render("<Product Name={{ name }} />", {"name": "App"})
        '<Product Name=App />'
    """
    if isinstance(context, ManifestContext):
        values = context.as_mapping()
    else:
        values = dict(context)

    for name in _scan_placeholders(template_source):
        if values.get(name) is None:
            raise MissingKeyError(name)

    return _PLACEHOLDER_RE.sub(
        lambda m: _format_xml_value(values[m.group(1)]), template_source
    )


def render_to_file(
    template_source: str,
    context: ManifestContext | Mapping[str, Any],
    dest: Path,
) -> Path:
    """Render a template and write the result to dest as UTF-8.

    The document is rendered completely before anything is written, and the
    write goes through a .part file, so a failure leaves dest untouched.

    Returns:
        dest.

    Raises:
        RenderError: If rendering fails (nothing is written).
        OSError: If the file cannot be written.
    """
    document = render(template_source, context)

    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")
    tmp.write_text(document, encoding="utf-8")
    tmp.replace(dest)
    return dest


def load_template(path: Path | None = None) -> str:
    """Read a manifest template.

    Args:
        path: Custom template file. Default: the packaged main.wxs.

    Raises:
        FileNotFoundError: If a custom template does not exist.
    """
    if path is not None:
        return path.read_text(encoding="utf-8")
    return (
        resources.files("wixpack")
        .joinpath("templates", DEFAULT_TEMPLATE_NAME)
        .read_text(encoding="utf-8")
    )
