"""Probe that ``sh`` can run the shebang scripts a configure build depends on."""
from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Protocol
import logging

from core.command_runner import SHELL, CommandRunner, SubprocessCommandRunner
from .environment import AmbientEnvironment
from .errors import PreflightReason, PreflightUnavailable

logger = logging.getLogger(__name__)

PROBE_SCRIPT_NAME = "test.sh"
PROBE_SCRIPT = "#!/bin/sh\ntrue\n"


class CapabilityCheck(Protocol):
    def __call__(self) -> None:
        """Raise :class:`PreflightUnavailable` when builds cannot run here."""


def _escape_default(text: str) -> str:
    escaped: List[str] = []
    for char in text:
        if char == "\t":
            escaped.append("\\t")
        elif char == "\r":
            escaped.append("\\r")
        elif char == "\n":
            escaped.append("\\n")
        elif char in {"\\", "'", '"'}:
            escaped.append(f"\\{char}")
        elif " " <= char <= "~":
            escaped.append(char)
        else:
            escaped.append(f"\\u{{{ord(char):x}}}")
    return "".join(escaped)


def escape_probe_path(path: str) -> str:
    """Escape ``path`` twice so it survives both quoting layers of ``sh -c``."""

    return _escape_default(_escape_default(path))


class ShellCapabilityCheck:
    """Runs ``sh -c "echo test; <probe>"`` and classifies the outcome.

    On Windows the probe executes a small shebang script written to
    ``OUT_DIR`` so that shells which cannot follow shebangs are told apart
    from shells that are broken outright.  Elsewhere the probe is ``true``.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
    ) -> None:
        self._runner = runner or SubprocessCommandRunner()
        self._environ = environ
        self._platform = platform

    def _probe_argument(self, ambient: AmbientEnvironment) -> str:
        if not ambient.is_windows:
            return "true"
        script = Path(ambient.require("OUT_DIR")) / PROBE_SCRIPT_NAME
        script.write_text(PROBE_SCRIPT, encoding="utf-8")
        return escape_probe_path(str(script))

    def __call__(self) -> None:
        ambient = AmbientEnvironment.capture(self._environ, platform=self._platform)
        command = [SHELL, "-c", f"echo test; {self._probe_argument(ambient)}"]
        try:
            result = self._runner.run(command, check=False, note="preflight")
        except OSError as exc:
            raise PreflightUnavailable(
                "`sh` is required to run `configure`", reason=PreflightReason.MISSING
            ) from exc

        if result.returncode == 0:
            return
        logger.error("sh probe stdout:\n%s", result.stdout)
        logger.error("sh probe stderr:\n%s", result.stderr)
        if ambient.is_windows and result.stdout == "test\n":
            raise PreflightUnavailable("`sh` does not parse shebangs", reason=PreflightReason.NO_SHEBANG)
        raise PreflightUnavailable(
            "`sh` is not standard or is otherwise broken", reason=PreflightReason.BROKEN
        )


__all__ = [
    "CapabilityCheck",
    "PROBE_SCRIPT",
    "PROBE_SCRIPT_NAME",
    "ShellCapabilityCheck",
    "escape_probe_path",
]
