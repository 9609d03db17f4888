"""Translation between the calling system's host/target and autotools' build/host.

The calling build system calls the machine running the compiler the *host*
and the machine running the produced artifact the *target*.  GNU autotools
calls those *build* and *host* respectively (its *target* only matters when
the artifact is itself a compiler).  Everything in this module takes and
returns triples in the calling system's sense unless a name says otherwise.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

MUSL_WRAPPER = "musl-gcc"
COMPILER_SUFFIXES = ("-cc", "-gcc")


@dataclass(frozen=True, slots=True)
class TripleMapping:
    host: str
    target: str

    @classmethod
    def from_calling_system(cls, host: str, target: str) -> "TripleMapping":
        return cls(host=host, target=target)

    @property
    def autotools_build(self) -> str:
        return self.host

    @property
    def autotools_host(self) -> str:
        return self.target

    @property
    def is_cross(self) -> bool:
        return self.host != self.target


def compiler_name(compiler: str) -> str:
    return PurePath(compiler).name if compiler else compiler


def derive_host(compiler: str, *, explicit_host: bool = False) -> str | None:
    """Guess the autotools ``--host`` triple from a cross compiler's name.

    Cross compilers are conventionally named ``<triple>-gcc`` or
    ``<triple>-cc``; the triple prefix is what ``configure`` wants.  Returns
    ``None`` when the caller already passed ``host``, for the ``musl-gcc``
    wrapper, and for native compilers without such a prefix.
    """

    if explicit_host:
        return None
    name = compiler_name(compiler)
    if name == MUSL_WRAPPER:
        return None
    for suffix in COMPILER_SUFFIXES:
        if name.endswith(suffix):
            prefix = name[: -len(suffix)]
            return prefix or None
    return None


def host_argument(compiler: str, *, explicit_host: bool = False) -> str | None:
    host = derive_host(compiler, explicit_host=explicit_host)
    return f"--host={host}" if host else None


def is_emscripten(target: str) -> bool:
    return "emscripten" in target


__all__ = [
    "COMPILER_SUFFIXES",
    "MUSL_WRAPPER",
    "TripleMapping",
    "compiler_name",
    "derive_host",
    "host_argument",
    "is_emscripten",
]
