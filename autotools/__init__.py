"""Drive ``configure && make`` builds from another build system."""
from __future__ import annotations

from .build import AutotoolsBuild, BuildMode, InvocationPlan, PlanState
from .cli import main
from .config import BuildConfig, fail, try_build_path
from .errors import (
    AutotoolsError,
    ConfigureDiagnosticDump,
    ExecutableNotFound,
    MissingEnvironment,
    NonZeroExit,
    PreflightUnavailable,
)
from .options import Option, OptionKind

__all__ = [
    "AutotoolsBuild",
    "AutotoolsError",
    "BuildConfig",
    "BuildMode",
    "ConfigureDiagnosticDump",
    "ExecutableNotFound",
    "InvocationPlan",
    "MissingEnvironment",
    "NonZeroExit",
    "Option",
    "OptionKind",
    "PlanState",
    "PreflightUnavailable",
    "fail",
    "main",
    "try_build_path",
]
