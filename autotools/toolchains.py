"""Native compiler discovery for a target/host pair.

The engine only needs three things from a compiler: the executable, its
default flags and any environment it wants exported.  :class:`CompilerProvider`
is that seam; :class:`ToolchainCompilerProvider` is the default
implementation, driven by the usual ``CC``/``CXX`` style variables and a small
registry of toolchain families.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol
import logging
import os

from core.config_loader import reject_unknown_keys

logger = logging.getLogger(__name__)


def _to_str_dict(mapping: Mapping[str, Any]) -> Dict[str, str]:
    return {str(key): str(value) for key, value in mapping.items()}


@dataclass(slots=True)
class Compiler:
    path: str
    flags: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)

    def cflags_env(self) -> str:
        return " ".join(self.flags)


class CompilerProvider(Protocol):
    def get_compiler(self, *, target: str, host: str, cpp: bool) -> Compiler:
        """Return the compiler to use for ``target`` when building on ``host``."""


@dataclass(slots=True)
class ToolchainDefinition:
    name: str
    cc: str
    cxx: str
    environment: Dict[str, str] = field(default_factory=dict)
    flags: tuple[str, ...] = ()
    prefixed: bool = False

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolchainDefinition":
        if not isinstance(data, Mapping):
            raise TypeError(f"Toolchain '{name}' definition must be a mapping")
        reject_unknown_keys(data, {"cc", "cxx", "environment", "flags", "prefixed"}, label=f"Toolchain '{name}'")
        cc = data.get("cc")
        cxx = data.get("cxx")
        if not cc or not cxx:
            raise ValueError(f"Toolchain '{name}' must specify both cc and cxx")
        environment: Dict[str, str] = {}
        env_section = data.get("environment")
        if isinstance(env_section, Mapping):
            environment = _to_str_dict(env_section)
        flags_section = data.get("flags") or ()
        return cls(
            name=name,
            cc=str(cc),
            cxx=str(cxx),
            environment=environment,
            flags=tuple(str(flag) for flag in flags_section),
            prefixed=bool(data.get("prefixed", False)),
        )

    def executable(self, *, cpp: bool, prefix: str | None) -> str:
        program = self.cxx if cpp else self.cc
        if self.prefixed and prefix:
            return f"{prefix}-{program}"
        return program


def _build_builtin_definitions() -> Dict[str, ToolchainDefinition]:
    raw: Dict[str, Mapping[str, Any]] = {
        "native": {"cc": "cc", "cxx": "c++"},
        "gnu": {"cc": "gcc", "cxx": "g++", "prefixed": True},
        "musl": {"cc": "musl-gcc", "cxx": "g++"},
        "emscripten": {
            "cc": "emcc",
            "cxx": "em++",
            "environment": {"AR": "emar", "RANLIB": "emranlib"},
        },
    }
    return {name: ToolchainDefinition.from_mapping(name, data) for name, data in raw.items()}


# Target triple -> GNU cross toolchain prefix.  "musl" selects the musl-gcc wrapper.
CROSS_PREFIXES: Dict[str, str] = {
    "aarch64-unknown-linux-gnu": "aarch64-linux-gnu",
    "aarch64-unknown-linux-musl": "aarch64-linux-musl",
    "arm-unknown-linux-gnueabi": "arm-linux-gnueabi",
    "arm-unknown-linux-gnueabihf": "arm-linux-gnueabihf",
    "armv7-unknown-linux-gnueabihf": "arm-linux-gnueabihf",
    "i586-unknown-linux-gnu": "i686-linux-gnu",
    "i686-unknown-linux-gnu": "i686-linux-gnu",
    "i686-unknown-linux-musl": "musl",
    "i686-pc-windows-gnu": "i686-w64-mingw32",
    "x86_64-pc-windows-gnu": "x86_64-w64-mingw32",
    "x86_64-unknown-linux-gnu": "x86_64-linux-gnu",
    "x86_64-unknown-linux-musl": "musl",
    "mips-unknown-linux-gnu": "mips-linux-gnu",
    "mipsel-unknown-linux-gnu": "mipsel-linux-gnu",
    "powerpc-unknown-linux-gnu": "powerpc-linux-gnu",
    "powerpc64-unknown-linux-gnu": "powerpc-linux-gnu",
    "powerpc64le-unknown-linux-gnu": "powerpc64le-linux-gnu",
    "riscv64gc-unknown-linux-gnu": "riscv64-linux-gnu",
    "s390x-unknown-linux-gnu": "s390x-linux-gnu",
}


class ToolchainRegistry:
    def __init__(self, definitions: Mapping[str, ToolchainDefinition] | None = None) -> None:
        self._definitions: Dict[str, ToolchainDefinition] = dict(definitions or {})

    @classmethod
    def with_builtins(cls) -> "ToolchainRegistry":
        return cls(_build_builtin_definitions())

    def register(self, definition: ToolchainDefinition) -> None:
        self._definitions[definition.name.lower()] = definition

    def get(self, name: str) -> ToolchainDefinition:
        try:
            return self._definitions[name.lower()]
        except KeyError:
            raise KeyError(f"Toolchain '{name}' is not defined") from None


class ToolchainCompilerProvider:
    """Resolve compilers the way build scripts conventionally do.

    Lookup order for the C compiler (``CXX`` variants for C++):
    ``CC_<target>``, ``CC_<target_with_underscores>``, ``TARGET_CC`` when
    cross compiling or ``HOST_CC`` otherwise, then ``CC``.  Without an
    override the toolchain family is chosen from the target triple.
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        registry: ToolchainRegistry | None = None,
    ) -> None:
        self._env = dict(environ) if environ is not None else dict(os.environ)
        self._registry = registry or ToolchainRegistry.with_builtins()

    def get_compiler(self, *, target: str, host: str, cpp: bool) -> Compiler:
        definition, prefix = self._select_definition(target=target, host=host)
        path = self._env_override(target=target, host=host, cpp=cpp)
        if path is None:
            path = definition.executable(cpp=cpp, prefix=prefix)
        flags = [*self._default_flags(target), *definition.flags]
        return Compiler(path=path, flags=flags, environment=dict(definition.environment))

    def _env_override(self, *, target: str, host: str, cpp: bool) -> str | None:
        var = "CXX" if cpp else "CC"
        kind = "HOST" if host == target else "TARGET"
        candidates = (
            f"{var}_{target}",
            f"{var}_{target.replace('-', '_')}",
            f"{kind}_{var}",
            var,
        )
        for name in candidates:
            value = self._env.get(name)
            if value:
                return value.strip()
        return None

    def _select_definition(self, *, target: str, host: str) -> tuple[ToolchainDefinition, str | None]:
        if "emscripten" in target:
            return self._registry.get("emscripten"), None
        if host == target:
            return self._registry.get("native"), None
        prefix = CROSS_PREFIXES.get(target)
        if prefix == "musl":
            return self._registry.get("musl"), None
        if prefix:
            return self._registry.get("gnu"), prefix
        logger.warning("no cross compiler known for target %s, falling back to the native compiler", target)
        return self._registry.get("native"), None

    def _default_flags(self, target: str) -> List[str]:
        flags: List[str] = []
        opt_level = self._env.get("OPT_LEVEL")
        if opt_level:
            flags.append(f"-O{opt_level}")
        if self._env.get("DEBUG", "").lower() in {"1", "true"}:
            flags.append("-g")
        flags.extend(["-ffunction-sections", "-fdata-sections"])
        if "windows" not in target:
            flags.append("-fPIC")
        if "emscripten" not in target:
            arch = target.split("-", 1)[0]
            if arch == "x86_64":
                flags.append("-m64")
            elif arch in {"i586", "i686"}:
                flags.append("-m32")
        return flags


__all__ = [
    "CROSS_PREFIXES",
    "Compiler",
    "CompilerProvider",
    "ToolchainCompilerProvider",
    "ToolchainDefinition",
    "ToolchainRegistry",
]
