"""
Pytest configuration and shared fixtures for wixpack tests.

This module provides reusable fixtures and test utilities used across
the test suite, including a factory for fake WiX tools: small Python
scripts named heat.exe, candle.exe and light.exe that behave like the real
tools closely enough to drive the pipeline on any POSIX system.
"""

from __future__ import annotations

import io
from pathlib import Path
import sys
import textwrap
from typing import Any
import zipfile

import pytest
import yaml

from wixpack.logging import SilentLogger, set_global_logger
from wixpack.manifest import PackageMetadata
from wixpack.toolchain import TOOL_NAMES, ToolchainInstallation

# Each fake tool writes the file named after its -out/-o flag (or one .wixobj
# per .wxs source for candle) and echoes its arguments.
_FAKE_HEAT = """
import sys
args = sys.argv[1:]
print("heat " + " ".join(args))
out = args[args.index("-out") + 1]
cg = args[args.index("-cg") + 1]
with open(out, "w", encoding="utf-8") as f:
    f.write('<Wix><Fragment><ComponentGroup Id="%s" /></Fragment></Wix>' % cg)
"""

_FAKE_CANDLE = """
import sys
args = sys.argv[1:]
for src in [a for a in args if a.endswith(".wxs")]:
    print(src)
    with open(src[:-4] + ".wixobj", "w", encoding="utf-8") as f:
        f.write("obj")
"""

_FAKE_LIGHT = """
import sys
args = sys.argv[1:]
out = args[args.index("-o") + 1]
print("linking " + out)
with open(out, "wb") as f:
    f.write(b"MSI")
"""

FAKE_TOOL_SOURCES = {
    "harvest": _FAKE_HEAT,
    "compile": _FAKE_CANDLE,
    "link": _FAKE_LIGHT,
}


def write_script(path: Path, body: str) -> Path:
    """Write an executable Python script with a shebang for this interpreter."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        f"#!{sys.executable}\n" + textwrap.dedent(body).lstrip(), encoding="utf-8"
    )
    path.chmod(0o755)
    return path


@pytest.fixture(autouse=True)
def reset_global_logger():
    """Restore the silent global logger after each test."""
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def silent_logger() -> SilentLogger:
    return SilentLogger()


@pytest.fixture
def metadata() -> PackageMetadata:
    """Provide sample product metadata."""
    return PackageMetadata(
        name="Test App",
        manufacturer="Example Corp",
        version="1.2.3",
        upgrade_code="6f4c7a36-6a4b-4b0e-9d7c-3f8c2a7f0b11",
    )


@pytest.fixture
def source_dir(tmp_test_dir: Path) -> Path:
    """Provide a source directory holding a single app.exe."""
    src = tmp_test_dir / "release"
    src.mkdir()
    (src / "app.exe").write_bytes(b"MZ fake executable")
    return src


@pytest.fixture
def fake_toolchain(tmp_test_dir: Path):
    """
    Factory fixture for a directory of fake WiX tools.

    Usage:
        toolchain = fake_toolchain()
        toolchain = fake_toolchain(overrides={"harvest": "import sys; sys.exit(2)"})
    """
    if sys.platform == "win32":
        pytest.skip("fake WiX tools are shebang scripts")

    def _create(
        name: str = "wix", overrides: dict[str, str] | None = None
    ) -> ToolchainInstallation:
        root = tmp_test_dir / name
        sources = dict(FAKE_TOOL_SOURCES)
        sources.update(overrides or {})
        for role, body in sources.items():
            write_script(root / TOOL_NAMES[role], body)
        return ToolchainInstallation(root)

    return _create


@pytest.fixture
def make_tool(tmp_test_dir: Path):
    """
    Factory fixture for a single executable Python script.

    Usage:
        tool = make_tool("candle.exe", "import sys; sys.exit(2)")
    """
    if sys.platform == "win32":
        pytest.skip("fake WiX tools are shebang scripts")

    def _create(name: str, body: str) -> Path:
        return write_script(tmp_test_dir / "bin" / name, body)

    return _create


@pytest.fixture
def make_zip():
    """
    Factory fixture building zip archives in memory.

    Usage:
        data = make_zip({"heat.exe": b"...", "doc/readme.txt": "text"})
    """

    def _create(entries: dict[str, bytes | str]) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, content in entries.items():
                zf.writestr(name, content)
        return buf.getvalue()

    return _create


@pytest.fixture
def wix_zip(make_zip) -> bytes:
    """Provide a zip shaped like the WiX binaries archive."""
    return make_zip(
        {
            "heat.exe": b"heat",
            "candle.exe": b"candle",
            "light.exe": b"light",
            "wix.dll": b"dll",
            "doc/LICENSE.TXT": "license",
        }
    )


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("wixpack.yaml", {"key": "value"})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def sample_project_data() -> dict[str, Any]:
    """Provide a complete project configuration."""
    return {
        "package": {
            "name": "Test App",
            "manufacturer": "Example Corp",
            "version": "1.2.3",
            "source_dir": "release",
        },
    }
