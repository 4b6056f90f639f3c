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

"""Logging interface for wixpack.

Library modules report progress through a small Logger protocol instead of
printing directly, so the pipeline can run silently under tests and
verbosely under the CLI.

The logger supports three output levels:
- Step: Always printed (pipeline progress, e.g. "[2/5] Harvesting...")
- Verbose: Only printed when verbose mode is enabled (includes WiX tool output)
- Debug: Only printed when debug mode is enabled (implies verbose)

Example:
    Configure global logger:
        ```python
        from wixpack.logging import get_logger, set_global_logger

        set_global_logger(get_logger(verbose=True))
        ```

    Use with dependency injection:

        def my_function(logger=None):
            if logger is None:
                logger = get_global_logger()
            logger.verbose("WIX", "Extracting...")

Note:
    The default global logger is silent. The CLI configures it when a
    command runs.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePath
from typing import Protocol, TextIO


class Logger(Protocol):
    """Protocol for logger implementations."""

    def step(self, step: int, total: int, message: str) -> None:
        """Print a step indicator.

        Args:
            step: Current step number (1-based).
            total: Total number of steps.
            message: Step description.
        """
        ...

    def verbose(self, prefix: str, message: str) -> None:
        """Print a verbose log message.

        Args:
            prefix: Message prefix (e.g., "BUILD", "HEAT").
            message: Log message.
        """
        ...

    def debug(self, prefix: str, message: str) -> None:
        """Print a debug log message.

        Args:
            prefix: Message prefix (e.g., "HTTP", "ZIP").
            message: Log message.
        """
        ...


class DefaultLogger:
    """Logger that prints to a text stream, gated by verbose and debug flags.

    Attributes:
        stream: Destination stream. None means the sys.stdout current at
            the time of each call.
    """

    def __init__(
        self, verbose: bool = False, debug: bool = False, stream: TextIO | None = None
    ) -> None:
        self._verbose = verbose or debug
        self._debug = debug
        self.stream = stream

    def _emit(self, text: str) -> None:
        print(text, file=self.stream, flush=True)

    def step(self, step: int, total: int, message: str) -> None:
        self._emit(f"[{step}/{total}] {message}")

    def verbose(self, prefix: str, message: str) -> None:
        if self._verbose:
            self._emit(f"[{prefix}] {message}")

    def debug(self, prefix: str, message: str) -> None:
        if self._debug:
            self._emit(f"[{prefix}] {message}")


class SilentLogger:
    """Logger that suppresses all output."""

    def step(self, step: int, total: int, message: str) -> None:
        pass

    def verbose(self, prefix: str, message: str) -> None:
        pass

    def debug(self, prefix: str, message: str) -> None:
        pass


_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Get a stdout logger with the given verbosity.

    Args:
        verbose: If True, logger will print verbose messages.
        debug: If True, logger will print debug messages (implies verbose).

    Returns:
        A DefaultLogger configured with the specified verbosity.
    """
    return DefaultLogger(verbose=verbose, debug=debug)


def tool_output_sink(logger: Logger, tool: str) -> Callable[[str], None]:
    """Return a sink forwarding one external tool's output lines to logger.

    Lines are logged at verbose level, prefixed with the tool's stem in
    upper case ("candle.exe" -> "[CANDLE]").
    """
    prefix = PurePath(tool).stem.upper()

    def sink(line: str) -> None:
        logger.verbose(prefix, line)

    return sink


def get_global_logger() -> Logger:
    """Return the current global logger (silent unless configured)."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Set the global logger instance.

    Args:
        logger: Logger instance used by library functions that are not
            given one explicitly.
    """
    global _global_logger
    _global_logger = logger
