"""Error kinds raised while driving a configure/make build."""
from __future__ import annotations

from enum import Enum


class AutotoolsError(RuntimeError):
    """Base class for every failure surfaced by a build call."""


class PreflightReason(str, Enum):
    MISSING = "missing"
    NO_SHEBANG = "no-shebang"
    BROKEN = "broken"


class PreflightUnavailable(AutotoolsError):
    """The ``sh`` indirection layer cannot run the legacy scripts."""

    def __init__(self, message: str, *, reason: PreflightReason) -> None:
        super().__init__(message)
        self.reason = reason


class MissingEnvironment(AutotoolsError):
    def __init__(self, variable: str) -> None:
        super().__init__(f"environment variable `{variable}` not defined")
        self.variable = variable


class ExecutableNotFound(AutotoolsError):
    def __init__(self, program: str, detail: str) -> None:
        super().__init__(f"failed to execute command: {detail}\nis `{program}` not installed?")
        self.program = program


class NonZeroExit(AutotoolsError):
    def __init__(self, program: str, returncode: int) -> None:
        super().__init__(f"command did not execute successfully, got: exit status: {returncode}")
        self.program = program
        self.returncode = returncode


class ConfigureDiagnosticDump(AutotoolsError):
    """Configuring failed; carries whatever ``config.log`` could tell us.

    The original failure is kept as ``__cause__``.  ``log_error`` is set when
    the log itself could not be read.
    """

    def __init__(
        self,
        original: AutotoolsError,
        *,
        log_path: str,
        log_text: str | None = None,
        log_error: str | None = None,
    ) -> None:
        parts = [str(original)]
        if log_text is not None:
            parts.append(f"--- {log_path} ---")
            parts.append(log_text.rstrip("\n"))
        if log_error is not None:
            parts.append(f"failed to read {log_path}: {log_error}")
        super().__init__("\n".join(parts))
        self.original = original
        self.log_path = log_path
        self.log_text = log_text
        self.log_error = log_error


__all__ = [
    "AutotoolsError",
    "ConfigureDiagnosticDump",
    "ExecutableNotFound",
    "MissingEnvironment",
    "NonZeroExit",
    "PreflightReason",
    "PreflightUnavailable",
]
