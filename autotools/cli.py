"""Command line interface for driving a configure/make build."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from functools import partial
from pathlib import Path
from typing import Iterable, List, Tuple
import logging
import sys

from core.command_runner import CommandRunner, RecordingCommandRunner, SubprocessCommandRunner
from .build import BuildMode
from .config import BuildConfig
from .config_loader import load_build_config
from .errors import AutotoolsError
from .options import Option, OptionKind


def _make_runner(dry_run: bool) -> SubprocessCommandRunner | RecordingCommandRunner:
    return RecordingCommandRunner() if dry_run else SubprocessCommandRunner()


def _emit_dry_run_output(runner: RecordingCommandRunner) -> None:
    for line in runner.iter_formatted():
        print(line)


def _split_assignment(value: str, *, flag: str) -> Tuple[str, str | None]:
    name, separator, rest = value.partition("=")
    if not name:
        raise ValueError(f"{flag} expects NAME[=VALUE], got {value!r}")
    return name, rest if separator else None


def _parse_env(values: Iterable[str]) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for raw in values:
        key, value = _split_assignment(raw, flag="--env")
        if value is None:
            raise ValueError(f"--env expects KEY=VALUE, got {raw!r}")
        pairs.append((key, value))
    return pairs


def _tag_option(kind: OptionKind, raw: str) -> Tuple[OptionKind, str]:
    return kind, raw


def _collect_options(args: Namespace) -> List[Option]:
    options: List[Option] = []
    for kind, raw in args.options:
        flag = "--option" if kind is OptionKind.ARBITRARY else f"--{kind.value}"
        name, value = _split_assignment(raw, flag=flag)
        options.append(Option(kind, name, value))
    return options


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="autotools-build", description="Drive a configure && make build")
    parser.add_argument("source", nargs="?", help="Directory containing the configure script")
    parser.add_argument("-c", "--config", type=Path, help="Build description file (.toml, .json, .yaml)")
    parser.add_argument("--target", help="Triple the artifacts will run on (defaults to $TARGET)")
    parser.add_argument("--host", help="Triple the compiler runs on (defaults to $HOST)")
    parser.add_argument("--out-dir", help="Install/output directory (defaults to $OUT_DIR)")
    # every option flag feeds one list so configure sees them in command-line order
    option_flags = (
        ("--enable", OptionKind.ENABLE, "Pass --enable-NAME"),
        ("--disable", OptionKind.DISABLE, "Pass --disable-NAME"),
        ("--with", OptionKind.WITH, "Pass --with-NAME"),
        ("--without", OptionKind.WITHOUT, "Pass --without-NAME"),
        ("--option", OptionKind.ARBITRARY, "Pass --NAME verbatim"),
    )
    for flag, kind, help_text in option_flags:
        parser.add_argument(
            flag,
            dest="options",
            action="append",
            type=partial(_tag_option, kind),
            metavar="NAME[=VALUE]",
            help=help_text,
        )
    parser.set_defaults(options=[])
    parser.add_argument("--cflag", action="append", default=[], help="Append to CFLAGS")
    parser.add_argument("--cxxflag", action="append", default=[], help="Append to CXXFLAGS")
    parser.add_argument("--ldflag", action="append", default=[], help="Append to LDFLAGS")
    parser.add_argument("--reconf", metavar="FLAGS", help="Run autoreconf with FLAGS before configuring")
    parser.add_argument("--make-target", action="append", default=[], help="Make target (default: install)")
    parser.add_argument("--make-arg", action="append", default=[], help="Extra argument for make")
    parser.add_argument("--env", action="append", default=[], metavar="KEY=VALUE", help="Environment override")
    parser.add_argument("--forbid", action="append", default=[], metavar="NAME", help="Drop a configure argument by name")
    parser.add_argument("--shared", action="store_true", help="Build shared libraries")
    parser.add_argument("--no-static", action="store_true", help="Do not build static libraries")
    parser.add_argument("--insource", action="store_true", help="Build inside the source directory")
    parser.add_argument("--fast-build", action="store_true", help="Skip configure when nothing changed")
    parser.add_argument("--configure-only", action="store_true", help="Run configuration only")
    parser.add_argument("--show-plan", action="store_true", help="Print the planned steps as JSON")
    parser.add_argument("-n", "--dry-run", action="store_true", help="Print commands without executing them")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    return parser.parse_args(list(argv))


def _build_config(args: Namespace, runner: CommandRunner) -> BuildConfig:
    if args.config is not None:
        config = load_build_config(args.config, source=args.source, command_runner=runner)
    elif args.source:
        config = BuildConfig(args.source, command_runner=runner)
    else:
        raise ValueError("a source directory or --config file is required")

    if args.target:
        config.target(args.target)
    if args.host:
        config.host(args.host)
    if args.out_dir:
        config.out_dir(args.out_dir)
    if args.shared:
        config.enable_shared()
    if args.no_static:
        config.disable_static()
    if args.insource:
        config.insource(True)
    if args.fast_build:
        config.fast_build(True)
    if args.reconf is not None:
        config.reconf(args.reconf)
    for flag in args.cflag:
        config.cflag(flag)
    for flag in args.cxxflag:
        config.cxxflag(flag)
    for flag in args.ldflag:
        config.ldflag(flag)
    for make_target in args.make_target:
        config.make_target(make_target)
    if args.make_arg:
        config.make_args([*config.settings.make_args, *args.make_arg])
    for name in args.forbid:
        config.forbid(name)
    for key, value in _parse_env(args.env):
        config.env(key, value)
    config.settings.options.extend(_collect_options(args))
    return config


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return _handle_build(args)


def _handle_build(args: Namespace) -> int:
    runner = _make_runner(args.dry_run)
    try:
        config = _build_config(args, runner)
    except (OSError, ValueError, TypeError) as exc:
        print(f"Error: {exc}")
        return 2

    mode = BuildMode.CONFIG_ONLY if args.configure_only else BuildMode.AUTO
    if args.dry_run or args.show_plan:
        try:
            engine = config.create_engine()
            plan = engine.plan(mode)
        except AutotoolsError as exc:
            print(f"Error: {exc}")
            return 1
        if args.show_plan:
            print(engine.serialize_plan(plan))
        if args.dry_run:
            engine.execute(plan, dry_run=True)
            if isinstance(runner, RecordingCommandRunner):
                _emit_dry_run_output(runner)
            return 0

    try:
        if args.configure_only:
            config.try_configure()
        else:
            config.try_build()
    except AutotoolsError as exc:
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
