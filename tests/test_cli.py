"""
Tests for wixpack.cli module.

Tests command dispatch, result output and exit codes.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from wixpack.cli import build_parser, main
from wixpack.exceptions import (
    ConfigError,
    NetworkError,
    NonZeroExitError,
    PipelineError,
)
from wixpack.pipeline import PipelineState
from wixpack.results import BuildResult
from wixpack.toolchain import ToolchainInstallation

pytestmark = pytest.mark.unit


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


@pytest.fixture
def project(create_yaml_file, sample_project_data) -> Path:
    return create_yaml_file("wixpack.yaml", sample_project_data)


class TestParser:
    def test_subcommands(self):
        parser = build_parser()

        args = parser.parse_args(["build", "wixpack.yaml", "-v"])
        assert args.command == "build"
        assert args.verbose is True
        assert args.debug is False

        args = parser.parse_args(["fetch-redist", "--arch", "x86", "-d"])
        assert args.arch == "x86"
        assert args.debug is True

    def test_invalid_arch_rejected(self):
        assert _run(["fetch-redist", "--arch", "arm64"]) == 2

    def test_command_required(self):
        assert _run([]) == 2


class TestBuildCommand:
    def test_success(self, project: Path, tmp_test_dir: Path, capsys):
        result = BuildResult(
            artifact_path=tmp_test_dir / "app.msi",
            state=PipelineState.DONE,
            build_dir=tmp_test_dir / "build",
            manifest_path=tmp_test_dir / "build" / "main.wxs",
            toolchain_root=tmp_test_dir / "wix",
            product_name="Test App",
            version="1.2.3",
            platform="x64",
        )

        with patch("wixpack.cli.build_project", return_value=result) as mock_build:
            assert _run(["build", str(project)]) == 0

        assert mock_build.call_args[0][0] == project.resolve()
        out = capsys.readouterr().out
        assert "BUILD RESULTS" in out
        assert "Test App" in out
        assert "Done" in out

    def test_overrides_passed_through(self, project: Path, tmp_test_dir: Path):
        with patch("wixpack.cli.build_project") as mock_build:
            _run(
                [
                    "build",
                    str(project),
                    "--output",
                    str(tmp_test_dir / "x.msi"),
                    "--toolchain-dir",
                    str(tmp_test_dir / "wix"),
                    "--build-dir",
                    str(tmp_test_dir / "b"),
                ]
            )

        kwargs = mock_build.call_args.kwargs
        assert kwargs["output_path"] == tmp_test_dir / "x.msi"
        assert kwargs["toolchain_dir"] == tmp_test_dir / "wix"
        assert kwargs["build_dir"] == tmp_test_dir / "b"

    def test_missing_project(self, tmp_test_dir: Path, capsys):
        assert _run(["build", str(tmp_test_dir / "nope.yaml")]) == 1
        assert "Project file not found" in capsys.readouterr().out

    def test_pipeline_failure_reports_stage_and_output(self, project: Path, capsys):
        cause = NonZeroExitError("candle.exe", 1, ["main.wxs(3): error CNDL0104"])
        err = PipelineError(PipelineState.COMPILING, cause)

        with patch("wixpack.cli.build_project", side_effect=err):
            assert _run(["build", str(project)]) == 1

        out = capsys.readouterr().out
        assert "Failed stage: Compiling" in out
        assert "Last output from candle.exe:" in out
        assert "main.wxs(3): error CNDL0104" in out

    def test_config_error(self, project: Path, capsys):
        with patch(
            "wixpack.cli.build_project", side_effect=ConfigError("bad project")
        ):
            assert _run(["build", str(project)]) == 1

        assert "Error: bad project" in capsys.readouterr().out


class TestRenderCommand:
    def test_renders_manifest(self, project: Path, tmp_test_dir: Path, capsys):
        dest = tmp_test_dir / "out.wxs"

        assert _run(["render", str(project), "--out", str(dest)]) == 0

        assert 'Name="Test App"' in dest.read_text(encoding="utf-8")
        assert "[SUCCESS]" in capsys.readouterr().out

    def test_invalid_project(self, create_yaml_file, tmp_test_dir: Path):
        path = create_yaml_file("bad.yaml", {"package": {"name": "x"}})

        assert _run(["render", str(path), "--out", str(tmp_test_dir / "o")]) == 1
        assert not (tmp_test_dir / "o").exists()

    def test_unwritable_destination(self, project: Path, tmp_test_dir: Path, capsys):
        blocker = tmp_test_dir / "blocker"
        blocker.write_text("a file, not a directory")

        code = _run(["render", str(project), "--out", str(blocker / "main.wxs")])

        assert code == 1
        assert "Error:" in capsys.readouterr().out


class TestFetchCommands:
    def test_fetch_toolchain(self, tmp_test_dir: Path, capsys):
        inst = ToolchainInstallation(tmp_test_dir)
        with patch("wixpack.cli.fetch_toolchain", return_value=inst) as mock_fetch:
            assert _run(["fetch-toolchain", "--dest", str(tmp_test_dir)]) == 0

        assert mock_fetch.call_args.kwargs["cache_dir"] == tmp_test_dir
        out = capsys.readouterr().out
        assert str(tmp_test_dir / "candle.exe") in out

    def test_fetch_toolchain_failure(self, capsys):
        with patch(
            "wixpack.cli.fetch_toolchain", side_effect=NetworkError("offline")
        ):
            assert _run(["fetch-toolchain"]) == 1

        assert "offline" in capsys.readouterr().out

    def test_fetch_redist(self, tmp_test_dir: Path, capsys):
        target = tmp_test_dir / "vc_redist.x86.exe"
        with patch("wixpack.cli.fetch_vc_redist", return_value=target) as mock_fetch:
            code = _run(["fetch-redist", "--arch", "x86", "--dest", str(tmp_test_dir)])

        assert code == 0
        mock_fetch.assert_called_once_with("x86", tmp_test_dir)
        assert str(target) in capsys.readouterr().out

    def test_fetch_redist_write_failure(self, tmp_test_dir: Path, capsys):
        with patch(
            "wixpack.cli.fetch_vc_redist",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            code = _run(["fetch-redist", "--dest", str(tmp_test_dir)])

        assert code == 1
        assert "Error:" in capsys.readouterr().out
