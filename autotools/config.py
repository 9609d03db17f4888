"""Chainable description of a configure/make build and its entry points.

Typical use from a build script::

    dst = (
        BuildConfig("libfoo")
        .enable("feature", "x")
        .cflag("-DFOO=1")
        .build()
    )

Every ``try_*`` method raises :class:`~autotools.errors.AutotoolsError` on
failure; the plain variants report the message and abort the script.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, NoReturn
import os

from core.command_runner import CommandRunner, SubprocessCommandRunner
from .build import AutotoolsBuild, BuildMode, BuildSettings, ClearBuildDir, InvocationPlan
from .environment import AmbientEnvironment
from .errors import AutotoolsError
from .options import Option, OptionKind
from .preflight import CapabilityCheck, ShellCapabilityCheck
from .toolchains import CompilerProvider, ToolchainCompilerProvider


def fail(message: str) -> NoReturn:
    raise SystemExit(f"\n{message}\n\nbuild script failed, must exit now")


class BuildConfig:
    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        command_runner: CommandRunner | None = None,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
        compilers: CompilerProvider | None = None,
        capability_check: CapabilityCheck | None = None,
        clear_build_dir: ClearBuildDir | None = None,
    ) -> None:
        self.settings = BuildSettings(source=Path.cwd() / path)
        self._command_runner = command_runner or SubprocessCommandRunner()
        self._environ = dict(environ) if environ is not None else None
        self._platform = platform
        self._compilers = compilers
        self._capability_check = capability_check or ShellCapabilityCheck(
            self._command_runner, environ=self._environ, platform=platform
        )
        self._clear_build_dir = clear_build_dir
        self._capabilities_checked = False
        self.last_build: AutotoolsBuild | None = None

    @classmethod
    def try_new(cls, path: str | os.PathLike[str], **kwargs) -> "BuildConfig":
        config = cls(path, **kwargs)
        config.check_capabilities()
        return config

    @classmethod
    def new(cls, path: str | os.PathLike[str], **kwargs) -> "BuildConfig":
        try:
            return cls.try_new(path, **kwargs)
        except AutotoolsError as exc:
            fail(str(exc))

    def check_capabilities(self) -> None:
        if not self._capabilities_checked:
            self._capability_check()
            self._capabilities_checked = True

    # Linkage

    def enable_shared(self) -> "BuildConfig":
        self.settings.shared = True
        return self

    def disable_shared(self) -> "BuildConfig":
        self.settings.shared = False
        return self

    def enable_static(self) -> "BuildConfig":
        self.settings.static = True
        return self

    def disable_static(self) -> "BuildConfig":
        self.settings.static = False
        return self

    # Options

    def _option(self, kind: OptionKind, name: str, value: str | None) -> "BuildConfig":
        self.settings.options.append(Option(kind, name, value))
        return self

    def config_option(self, name: str, value: str | None = None) -> "BuildConfig":
        """Pass ``--name[=value]`` to configure verbatim."""

        return self._option(OptionKind.ARBITRARY, name, value)

    def enable(self, name: str, value: str | None = None) -> "BuildConfig":
        return self._option(OptionKind.ENABLE, name, value)

    def disable(self, name: str, value: str | None = None) -> "BuildConfig":
        return self._option(OptionKind.DISABLE, name, value)

    def with_(self, name: str, value: str | None = None) -> "BuildConfig":
        return self._option(OptionKind.WITH, name, value)

    def without(self, name: str, value: str | None = None) -> "BuildConfig":
        return self._option(OptionKind.WITHOUT, name, value)

    # Flags

    def cflag(self, flag: str) -> "BuildConfig":
        self.settings.cflags.append(str(flag))
        return self

    def cxxflag(self, flag: str) -> "BuildConfig":
        self.settings.cxxflags.append(str(flag))
        return self

    def ldflag(self, flag: str) -> "BuildConfig":
        self.settings.ldflags.append(str(flag))
        return self

    # Triples, directories and environment

    def target(self, target: str) -> "BuildConfig":
        self.settings.target = target
        return self

    def host(self, host: str) -> "BuildConfig":
        self.settings.host = host
        return self

    def out_dir(self, path: str | os.PathLike[str]) -> "BuildConfig":
        self.settings.out_dir = Path.cwd() / path
        return self

    def env(self, key: str, value: str) -> "BuildConfig":
        self.settings.env.append((str(key), str(value)))
        return self

    # Phases

    def reconf(self, flags: str) -> "BuildConfig":
        """Run ``autoreconf <flags>`` in the source directory before configuring."""

        self.settings.reconf = flags
        return self

    def make_target(self, target: str) -> "BuildConfig":
        self.settings.make_targets.append(target)
        return self

    def make_args(self, args: Iterable[str]) -> "BuildConfig":
        self.settings.make_args = [str(arg) for arg in args]
        return self

    def insource(self, build_insource: bool) -> "BuildConfig":
        self.settings.insource = build_insource
        return self

    def forbid(self, name: str) -> "BuildConfig":
        """Never pass the configure argument called ``name``, whatever its value."""

        self.settings.forbidden.add(str(name))
        return self

    def fast_build(self, fast: bool) -> "BuildConfig":
        self.settings.fast_build = fast
        return self

    # Running

    def create_engine(self) -> AutotoolsBuild:
        ambient = AmbientEnvironment.capture(self._environ, platform=self._platform)
        compilers = self._compilers or ToolchainCompilerProvider(environ=ambient.values)
        engine = AutotoolsBuild(
            self.settings,
            command_runner=self._command_runner,
            ambient=ambient,
            compilers=compilers,
            clear_build_dir=self._clear_build_dir,
        )
        self.last_build = engine
        return engine

    def plan(self, mode: BuildMode = BuildMode.AUTO) -> InvocationPlan:
        return self.create_engine().plan(mode)

    def try_configure(self) -> Path:
        """Run only the reconfigure and configure phases."""

        self.check_capabilities()
        return self.create_engine().configure()

    def configure(self) -> Path:
        try:
            return self.try_configure()
        except AutotoolsError as exc:
            fail(str(exc))

    def try_build(self) -> Path:
        """Configure, then run make; returns the output directory."""

        self.check_capabilities()
        return self.create_engine().build()

    def build(self) -> Path:
        try:
            return self.try_build()
        except AutotoolsError as exc:
            fail(str(exc))


def try_build_path(path: str | os.PathLike[str], **kwargs) -> Path:
    return BuildConfig.try_new(path, **kwargs).try_build()


def build(path: str | os.PathLike[str], **kwargs) -> Path:
    """Build the configure project at ``path`` with default settings."""

    return BuildConfig.new(path, **kwargs).build()


__all__ = ["BuildConfig", "build", "fail", "try_build_path"]
