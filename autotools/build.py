"""Planning and execution of the reconfigure, configure and make phases."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Set, Tuple
import json
import logging
import shlex

from core.command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    format_command,
    shell_command,
)
from .environment import AmbientEnvironment
from .errors import AutotoolsError, ConfigureDiagnosticDump, ExecutableNotFound, NonZeroExit
from .fingerprint import FingerprintGate, render_fingerprint
from .flags import assemble_flags, assemble_linker_flags
from .options import Option, encode_options, filter_forbidden
from .toolchains import Compiler, CompilerProvider
from .triple import TripleMapping, host_argument, is_emscripten

logger = logging.getLogger(__name__)

CONFIG_LOG = "config.log"
DEFAULT_MAKE_TARGET = "install"

ClearBuildDir = Callable[[Path], None]


class BuildMode(str, Enum):
    AUTO = "auto"
    CONFIG_ONLY = "config-only"


class PlanState(str, Enum):
    UNCONFIGURED = "unconfigured"
    RECONFIGURING = "reconfiguring"
    CONFIGURING = "configuring"
    CONFIGURED = "configured"
    BUILDING = "building"
    BUILT = "built"
    FAILED = "failed"


_TRANSITIONS: Dict[PlanState, Set[PlanState]] = {
    PlanState.UNCONFIGURED: {PlanState.RECONFIGURING, PlanState.CONFIGURING, PlanState.CONFIGURED},
    PlanState.RECONFIGURING: {PlanState.CONFIGURING, PlanState.CONFIGURED},
    PlanState.CONFIGURING: {PlanState.CONFIGURED},
    PlanState.CONFIGURED: {PlanState.BUILDING},
    PlanState.BUILDING: {PlanState.BUILT},
}

TERMINAL_STATES = frozenset({PlanState.BUILT, PlanState.FAILED})


@dataclass(slots=True)
class BuildSettings:
    """Everything a caller can say about one configure/make build."""

    source: Path
    shared: bool = False
    static: bool = True
    cflags: List[str] = field(default_factory=list)
    cxxflags: List[str] = field(default_factory=list)
    ldflags: List[str] = field(default_factory=list)
    options: List[Option] = field(default_factory=list)
    host: str | None = None
    target: str | None = None
    out_dir: Path | None = None
    env: List[Tuple[str, str]] = field(default_factory=list)
    reconf: str | None = None
    make_targets: List[str] = field(default_factory=list)
    make_args: List[str] = field(default_factory=list)
    insource: bool = False
    forbidden: Set[str] = field(default_factory=set)
    fast_build: bool = False

    def copy(self) -> "BuildSettings":
        return BuildSettings(
            source=self.source,
            shared=self.shared,
            static=self.static,
            cflags=list(self.cflags),
            cxxflags=list(self.cxxflags),
            ldflags=list(self.ldflags),
            options=list(self.options),
            host=self.host,
            target=self.target,
            out_dir=self.out_dir,
            env=list(self.env),
            reconf=self.reconf,
            make_targets=list(self.make_targets),
            make_args=list(self.make_args),
            insource=self.insource,
            forbidden=set(self.forbidden),
            fast_build=self.fast_build,
        )


@dataclass(slots=True)
class BuildStep:
    description: str
    program: str
    command: List[str]
    cwd: Path
    env: Dict[str, str]


@dataclass(slots=True)
class InvocationPlan:
    mode: BuildMode
    source_dir: Path
    output_dir: Path
    build_dir: Path
    triples: TripleMapping
    configure: BuildStep
    reconfigure: BuildStep | None = None
    build: BuildStep | None = None
    insource: bool = False
    fast_build: bool = False
    c_compiler: Compiler | None = None
    cxx_compiler: Compiler | None = None

    @property
    def steps(self) -> List[BuildStep]:
        return [step for step in (self.reconfigure, self.configure, self.build) if step is not None]


def run_step(runner: CommandRunner, step: BuildStep) -> CommandResult:
    logger.info("running: %s", format_command(step.command))
    try:
        return runner.run(step.command, cwd=step.cwd, env=step.env, note=step.description, stream=True)
    except CommandError as exc:
        raise NonZeroExit(step.program, exc.result.returncode) from exc
    except FileNotFoundError as exc:
        raise ExecutableNotFound(step.program, str(exc)) from exc
    except OSError as exc:
        raise AutotoolsError(f"failed to execute command: {exc}") from exc


def _clear_nothing(build_dir: Path) -> None:
    return None


class AutotoolsBuild:
    """Drives one configure/make call through its phases.

    An engine is created per call, works on its own copy of the settings and
    records every state it passes through in :attr:`history`.
    """

    def __init__(
        self,
        settings: BuildSettings,
        *,
        command_runner: CommandRunner,
        ambient: AmbientEnvironment,
        compilers: CompilerProvider,
        clear_build_dir: ClearBuildDir | None = None,
    ) -> None:
        self._settings = settings.copy()
        self._command_runner = command_runner
        self._ambient = ambient
        self._compilers = compilers
        self._clear_build_dir = clear_build_dir or _clear_nothing
        self._state = PlanState.UNCONFIGURED
        self.history: List[PlanState] = [PlanState.UNCONFIGURED]

    @property
    def state(self) -> PlanState:
        return self._state

    def _transition(self, state: PlanState) -> None:
        allowed = _TRANSITIONS.get(self._state, set())
        if state is not PlanState.FAILED and state not in allowed:
            raise RuntimeError(f"Invalid build state transition: {self._state.value} -> {state.value}")
        if state is PlanState.FAILED and self._state in TERMINAL_STATES:
            raise RuntimeError(f"Cannot fail from terminal state {self._state.value}")
        logger.debug("build state %s -> %s", self._state.value, state.value)
        self._state = state
        self.history.append(state)

    def _mark_failed(self) -> None:
        if self._state not in TERMINAL_STATES:
            self._transition(PlanState.FAILED)

    # Planning

    def _resolve_paths(self) -> Tuple[Path, Path]:
        settings = self._settings
        if settings.insource:
            return settings.source, settings.source
        output_dir = self._ambient.out_dir(settings.out_dir)
        return output_dir, output_dir / "build"

    def _user_environment(self) -> Dict[str, str]:
        env: Dict[str, str] = {}
        for key, value in self._settings.env:
            env[key] = value
        return env

    def _translate_paths(self, output_dir: Path, source_dir: Path) -> List[str]:
        if not self._ambient.is_windows:
            return []
        # configure rejects backslashes in --prefix and --srcdir
        command = ["cygpath", "--unix", "--codepage=UTF8", str(output_dir), str(source_dir)]
        try:
            result = self._command_runner.run(command, check=False, note="cygpath")
        except OSError as exc:
            logger.debug("cygpath unavailable, keeping native paths: %s", exc)
            return []
        if result.returncode != 0:
            logger.debug("cygpath exited with %s, keeping native paths", result.returncode)
            return []
        lines = result.stdout.splitlines()
        if len(lines) < 2:
            logger.debug("unexpected cygpath output %r, keeping native paths", result.stdout)
            return []
        return [f"--prefix={lines[0]}", f"--srcdir={lines[1]}"]

    def _reconfigure_step(self, source_dir: Path) -> BuildStep:
        flags = shlex.split(self._settings.reconf or "")
        return BuildStep(
            description="reconfigure",
            program="autoreconf",
            command=shell_command("autoreconf", flags),
            cwd=source_dir,
            env=self._user_environment(),
        )

    def _configure_step(
        self,
        *,
        output_dir: Path,
        build_dir: Path,
        triples: TripleMapping,
        c_compiler: Compiler,
        cxx_compiler: Compiler,
        path_args: Sequence[str] = (),
    ) -> BuildStep:
        settings = self._settings
        args: List[str] = [f"--prefix={output_dir}", *path_args]
        args.append("--enable-shared" if settings.shared else "--disable-shared")
        args.append("--enable-static" if settings.static else "--disable-static")
        encoded = encode_options(settings.options)
        args.extend(encoded.tokens)
        host = host_argument(c_compiler.path, explicit_host=encoded.explicit_host)
        if host:
            args.append(host)
        args = filter_forbidden(args, settings.forbidden)

        env: Dict[str, str] = {
            "CFLAGS": assemble_flags(c_compiler.flags, self._ambient.cflags, settings.cflags),
            "CXXFLAGS": assemble_flags(cxx_compiler.flags, self._ambient.cxxflags, settings.cxxflags),
        }
        ldflags = assemble_linker_flags(self._ambient.ldflags, settings.ldflags)
        if ldflags is not None:
            env["LDFLAGS"] = ldflags
        env["CC"] = c_compiler.path
        env["CXX"] = cxx_compiler.path
        env.update(c_compiler.environment)
        env.update(cxx_compiler.environment)
        env.update(self._user_environment())

        script = settings.source / "configure"
        if is_emscripten(triples.target):
            program = "emconfigure"
            command = shell_command(program, [str(script), *args])
        else:
            program = "configure"
            command = shell_command(script, args)
        return BuildStep(description="configure", program=program, command=command, cwd=build_dir, env=env)

    def _make_step(self, *, build_dir: Path, triples: TripleMapping) -> BuildStep:
        make = self._ambient.make_program
        args: List[str] = list(self._settings.make_targets or [DEFAULT_MAKE_TARGET])
        args.extend(self._settings.make_args)

        env: Dict[str, str] = {}
        num_jobs = self._ambient.num_jobs
        if num_jobs is not None:
            jobserver = self._ambient.jobserver_flags
            if jobserver is not None and self._ambient.supports_jobserver:
                env["MAKEFLAGS"] = jobserver
            else:
                args.append(f"-j{num_jobs}")
        env.update(self._user_environment())

        if is_emscripten(triples.target):
            program = "emmake"
            command = shell_command(program, [make, *args])
        else:
            program = make
            command = shell_command(make, args)
        return BuildStep(description="build", program=program, command=command, cwd=build_dir, env=env)

    def plan(self, mode: BuildMode = BuildMode.AUTO) -> InvocationPlan:
        settings = self._settings
        target = self._ambient.target(settings.target)
        host = self._ambient.host(settings.host)
        triples = TripleMapping.from_calling_system(host=host, target=target)
        c_compiler = self._compilers.get_compiler(target=target, host=host, cpp=False)
        cxx_compiler = self._compilers.get_compiler(target=target, host=host, cpp=True)
        output_dir, build_dir = self._resolve_paths()

        reconfigure = self._reconfigure_step(settings.source) if settings.reconf is not None else None
        configure = self._configure_step(
            output_dir=output_dir,
            build_dir=build_dir,
            triples=triples,
            c_compiler=c_compiler,
            cxx_compiler=cxx_compiler,
        )
        build = self._make_step(build_dir=build_dir, triples=triples) if mode is BuildMode.AUTO else None
        return InvocationPlan(
            mode=mode,
            source_dir=settings.source,
            output_dir=output_dir,
            build_dir=build_dir,
            triples=triples,
            configure=configure,
            reconfigure=reconfigure,
            build=build,
            insource=settings.insource,
            fast_build=settings.fast_build,
            c_compiler=c_compiler,
            cxx_compiler=cxx_compiler,
        )

    # Execution

    def _prepare_directories(self, plan: InvocationPlan) -> None:
        if plan.insource:
            return
        self._clear_build_dir(plan.build_dir)
        plan.build_dir.mkdir(parents=True, exist_ok=True)

    def _diagnostic_dump(self, plan: InvocationPlan, error: AutotoolsError) -> ConfigureDiagnosticDump:
        log_path = plan.build_dir / CONFIG_LOG
        try:
            text = log_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.error("failed to read %s: %s", log_path, exc)
            return ConfigureDiagnosticDump(error, log_path=str(log_path), log_error=str(exc))
        logger.error("configure failed, contents of %s:\n%s", log_path, text)
        return ConfigureDiagnosticDump(error, log_path=str(log_path), log_text=text)

    def _record_fingerprint(self, gate: FingerprintGate, rendered: str) -> None:
        try:
            gate.record(rendered)
        except OSError as exc:
            logger.warning("failed to write %s: %s", gate.path, exc)

    def _with_translated_paths(self, plan: InvocationPlan) -> InvocationPlan:
        path_args = self._translate_paths(plan.output_dir, plan.source_dir)
        if not path_args or plan.c_compiler is None or plan.cxx_compiler is None:
            return plan
        configure = self._configure_step(
            output_dir=plan.output_dir,
            build_dir=plan.build_dir,
            triples=plan.triples,
            c_compiler=plan.c_compiler,
            cxx_compiler=plan.cxx_compiler,
            path_args=path_args,
        )
        return replace(plan, configure=configure)

    def _run_configure(self, plan: InvocationPlan) -> None:
        gate = FingerprintGate(plan.build_dir)
        rendered = render_fingerprint(plan.configure, plan.triples)
        if plan.fast_build and gate.should_skip(rendered):
            logger.debug("configure arguments unchanged since the last run, skipping configure")
            self._transition(PlanState.CONFIGURED)
            return

        self._transition(PlanState.CONFIGURING)
        try:
            run_step(self._command_runner, plan.configure)
        except AutotoolsError as exc:
            raise self._diagnostic_dump(plan, exc) from exc
        finally:
            self._record_fingerprint(gate, rendered)
        self._transition(PlanState.CONFIGURED)

    def execute(self, plan: InvocationPlan, *, dry_run: bool = False) -> Path:
        if dry_run:
            for step in plan.steps:
                self._command_runner.run(
                    step.command,
                    cwd=step.cwd,
                    env=step.env,
                    check=False,
                    note=step.description,
                    stream=False,
                )
            return plan.output_dir

        try:
            plan = self._with_translated_paths(plan)
            self._prepare_directories(plan)
            if plan.reconfigure is not None:
                self._transition(PlanState.RECONFIGURING)
                run_step(self._command_runner, plan.reconfigure)
            self._run_configure(plan)
            if plan.build is not None:
                self._transition(PlanState.BUILDING)
                run_step(self._command_runner, plan.build)
                self._transition(PlanState.BUILT)
        except AutotoolsError:
            self._mark_failed()
            raise
        except OSError as exc:
            self._mark_failed()
            raise AutotoolsError(str(exc)) from exc

        if plan.build is not None:
            print(f"cargo:root={plan.output_dir}")
        return plan.output_dir

    def _plan_and_execute(self, mode: BuildMode) -> Path:
        try:
            plan = self.plan(mode)
        except AutotoolsError:
            self._mark_failed()
            raise
        return self.execute(plan)

    def configure(self) -> Path:
        return self._plan_and_execute(BuildMode.CONFIG_ONLY)

    def build(self) -> Path:
        return self._plan_and_execute(BuildMode.AUTO)

    def serialize_plan(self, plan: InvocationPlan) -> str:
        data = {
            "mode": plan.mode.value,
            "source_dir": str(plan.source_dir),
            "output_dir": str(plan.output_dir),
            "build_dir": str(plan.build_dir),
            "build_triple": plan.triples.autotools_build,
            "host_triple": plan.triples.autotools_host,
            "steps": [
                {
                    "description": step.description,
                    "program": step.program,
                    "command": list(step.command),
                    "cwd": str(step.cwd),
                    "env": step.env,
                }
                for step in plan.steps
            ],
        }
        return json.dumps(data, indent=2)


__all__ = [
    "AutotoolsBuild",
    "BuildMode",
    "BuildSettings",
    "BuildStep",
    "CONFIG_LOG",
    "DEFAULT_MAKE_TARGET",
    "InvocationPlan",
    "PlanState",
    "TERMINAL_STATES",
    "run_step",
]
