"""Read access to the variables the calling build system exports."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping
import os
import sys

from .errors import MissingEnvironment

# make on these platforms is not jobserver aware
BSD_PLATFORMS = ("openbsd", "netbsd", "freebsd", "bitrig", "dragonfly")


@dataclass(slots=True)
class AmbientEnvironment:
    values: Dict[str, str] = field(default_factory=dict)
    platform: str = sys.platform

    @classmethod
    def capture(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        platform: str | None = None,
    ) -> "AmbientEnvironment":
        values = dict(environ) if environ is not None else dict(os.environ)
        return cls(values=values, platform=platform or sys.platform)

    def get(self, name: str) -> str | None:
        return self.values.get(name)

    def require(self, name: str) -> str:
        value = self.values.get(name)
        if value is None:
            raise MissingEnvironment(name)
        return value

    def target(self, override: str | None = None) -> str:
        return override if override is not None else self.require("TARGET")

    def host(self, override: str | None = None) -> str:
        return override if override is not None else self.require("HOST")

    def out_dir(self, override: Path | None = None) -> Path:
        return override if override is not None else Path(self.require("OUT_DIR"))

    @property
    def make_program(self) -> str:
        return self.values.get("MAKE") or "make"

    @property
    def num_jobs(self) -> str | None:
        return self.values.get("NUM_JOBS")

    @property
    def jobserver_flags(self) -> str | None:
        return self.values.get("CARGO_MAKEFLAGS")

    @property
    def cflags(self) -> str | None:
        return self.values.get("CFLAGS")

    @property
    def cxxflags(self) -> str | None:
        return self.values.get("CXXFLAGS")

    @property
    def ldflags(self) -> str | None:
        return self.values.get("LDFLAGS")

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    @property
    def is_bsd(self) -> bool:
        return self.platform.startswith(BSD_PLATFORMS)

    @property
    def supports_jobserver(self) -> bool:
        return not (self.is_windows or self.is_bsd)


__all__ = ["AmbientEnvironment", "BSD_PLATFORMS"]
