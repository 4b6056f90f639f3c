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

"""Exception hierarchy for wixpack.

This module defines the error taxonomy used by every stage of the installer
build. Each component raises a typed failure to its caller; only the CLI
decides how to present it. Nothing in wixpack retries automatically.

- ConfigError: Project file problems (YAML parse, missing fields)
- IntegrityError: Digest mismatch or malformed expected digest
- AcquireError: Toolchain download, verification or extraction failures
- RenderError: Missing placeholder values or malformed manifest template
- StageError: A WiX tool could not be spawned or exited non-zero
- PipelineError: Wraps any of the above with the pipeline state that failed

All exceptions inherit from WixpackError, allowing users to catch all
wixpack errors with a single except clause if needed.

Example:
    Catching a pipeline failure:
        ```python
        from wixpack.exceptions import PipelineError

        try:
            result = build_installer(source_dir, metadata, Path("dist/app.msi"))
        except PipelineError as e:
            print(f"Build failed while {e.stage.value}: {e.cause}")
        ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wixpack.pipeline import PipelineState

__all__ = [
    "WixpackError",
    "ConfigError",
    "IntegrityError",
    "MalformedDigestError",
    "DigestMismatchError",
    "AcquireError",
    "NetworkError",
    "ArchiveIntegrityError",
    "ExtractionError",
    "RenderError",
    "MissingKeyError",
    "MalformedTemplateError",
    "StageError",
    "SpawnFailedError",
    "NonZeroExitError",
    "PipelineError",
]


class WixpackError(Exception):
    """Base exception for all wixpack errors."""

    pass


class ConfigError(WixpackError):
    """Raised for project configuration errors.

    This exception is raised when there are problems with:

    - YAML parsing (syntax errors, invalid structure)
    - Missing or invalid configuration fields
    - Missing project files or source directories
    """

    pass


class IntegrityError(WixpackError):
    """Raised when downloaded bytes cannot be shown to match a pinned digest."""

    pass


class MalformedDigestError(IntegrityError):
    """The expected digest string is not valid SHA-256 hex."""

    pass


class DigestMismatchError(IntegrityError):
    """The computed digest differs from the expected one.

    Attributes:
        expected: Expected digest, lowercase hex.
        actual: Computed digest, lowercase hex.
    """

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"sha256 mismatch: got {actual}, expected {expected}")
        self.expected = expected
        self.actual = actual


class AcquireError(WixpackError):
    """Raised when the WiX toolchain cannot be acquired."""

    pass


class NetworkError(AcquireError):
    """Transport failure or non-success HTTP status while downloading."""

    pass


class ArchiveIntegrityError(AcquireError):
    """The downloaded archive failed digest verification."""

    pass


class ExtractionError(AcquireError):
    """An archive entry could not be read or written, or the extracted
    toolchain is incomplete."""

    pass


class RenderError(WixpackError):
    """Raised when the WiX manifest cannot be rendered."""

    pass


class MissingKeyError(RenderError):
    """A template placeholder references a key with no value.

    Attributes:
        key: Name of the missing placeholder.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"no value for template placeholder {key!r}")
        self.key = key


class MalformedTemplateError(RenderError):
    """The template contains unbalanced or invalid placeholder markers."""

    pass


class StageError(WixpackError):
    """Raised when an external WiX tool fails.

    Attributes:
        tool: Name of the tool executable (e.g., "candle.exe").
        output: Last lines of output captured from the tool.
    """

    def __init__(self, message: str, tool: str, output: list[str] | None = None):
        super().__init__(message)
        self.tool = tool
        self.output = list(output or [])


class SpawnFailedError(StageError):
    """The tool could not be started (missing or not executable).

    Attributes:
        cause: The OSError raised by the operating system.
    """

    def __init__(self, tool: str, cause: OSError) -> None:
        super().__init__(f"failed to run {tool}: {cause}", tool)
        self.cause = cause


class NonZeroExitError(StageError):
    """The tool exited with a non-zero status or was killed by a signal.

    Attributes:
        code: Exit status; negative values are signal numbers (POSIX).
    """

    def __init__(self, tool: str, code: int, output: list[str] | None = None):
        if code < 0:
            message = f"{tool} terminated by signal {-code}"
        else:
            message = f"{tool} failed (exit code {code})"
        super().__init__(message, tool, output)
        self.code = code


class PipelineError(WixpackError):
    """Raised by the orchestrator when any pipeline state fails.

    Attributes:
        stage: The PipelineState that was active when the failure occurred.
        cause: The underlying exception.
    """

    def __init__(self, stage: PipelineState, cause: BaseException) -> None:
        super().__init__(f"{stage.value} failed: {cause}")
        self.stage = stage
        self.cause = cause
