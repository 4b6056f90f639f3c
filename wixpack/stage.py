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

"""External tool execution for wixpack.

This module runs one WiX tool (heat, candle or light) as a child process and
streams its output, line by line, to a log sink.

Design Principles:
    - Standard error is merged into standard output, so diagnostics a tool
      prints only on stderr still reach the log, in emission order
    - Drain-then-wait: every line is forwarded before the exit status is
      interpreted, and the pipe is read as fast as the tool writes it
    - Exit status is the only success criterion; produced files are not
      inspected
    - No retries and no timeouts: a hung tool hangs the build

Example:
    from pathlib import Path
    from wixpack.stage import run_stage

    run_stage(
        Path("cache/wix/3.11.1/candle.exe"),
        ["-arch", "x64", "main.wxs"],
        Path("builds/my-app/1.2.3"),
        print,
    )
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
import subprocess
from typing import IO, cast

from wixpack.exceptions import NonZeroExitError, SpawnFailedError

LogSink = Callable[[str], None]

# Lines kept on NonZeroExitError for display after a failure.
OUTPUT_TAIL_LINES = 40


@dataclass(frozen=True)
class Stage:
    """Descriptor for one pipeline step.

    Attributes:
        name: Display name (e.g., "Harvesting").
        tool: Toolchain role ("harvest", "compile" or "link").
        args: Argument vector, without the executable.
        working_dir: Directory the tool runs in.
        outputs: Artifacts the tool is expected to produce.
    """

    name: str
    tool: str
    args: tuple[str, ...]
    working_dir: Path
    outputs: tuple[Path, ...] = field(default_factory=tuple)


def run_stage(
    tool_path: Path,
    args: Sequence[str],
    working_dir: Path,
    log_sink: LogSink,
) -> None:
    """Run an external tool and forward its output to log_sink.

    Args:
        tool_path: Executable to run.
        args: Arguments passed after the executable.
        working_dir: Working directory for the child process.
        log_sink: Called once per output line, in order, without the line
            terminator.

    Raises:
        SpawnFailedError: If the tool is missing or cannot be executed.
        NonZeroExitError: If the tool exits non-zero or is killed by a signal.
    """
    tool = Path(tool_path).name
    cmd = [str(tool_path), *args]

    try:
        process = subprocess.Popen(
            cmd,
            cwd=working_dir,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as err:
        raise SpawnFailedError(tool, err) from err

    tail: deque[str] = deque(maxlen=OUTPUT_TAIL_LINES)
    try:
        # stdout=PIPE always yields a stream
        stdout = cast(IO[str], process.stdout)
        with stdout:
            for raw in stdout:
                line = raw.rstrip("\r\n")
                tail.append(line)
                log_sink(line)
    except BaseException:
        process.kill()
        process.wait()
        raise

    code = process.wait()
    if code != 0:
        raise NonZeroExitError(tool, code, list(tail))
