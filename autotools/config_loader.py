"""Describe a build in a TOML, JSON or YAML file instead of code."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from core.config_loader import (
    load_config_file,
    normalize_bool,
    normalize_string_list,
    reject_unknown_keys,
)
from .config import BuildConfig
from .options import Option, OptionKind
from .toolchains import ToolchainCompilerProvider, ToolchainDefinition, ToolchainRegistry

FILE_KEYS = {"build", "toolchains"}

BUILD_KEYS = {
    "source",
    "shared",
    "static",
    "insource",
    "fast_build",
    "reconf",
    "target",
    "host",
    "out_dir",
    "cflags",
    "cxxflags",
    "ldflags",
    "make_targets",
    "make_args",
    "forbid",
    "env",
    "options",
}

OPTION_KEYS = {"kind", "name", "value"}


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"build.{key} must be a string")
    return value


def _resolve_path(base_dir: Path, value: Any, *, field_name: str) -> Path:
    if not isinstance(value, str) or not value:
        raise TypeError(f"{field_name} must be a non-empty string")
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def parse_options(value: Any) -> List[Option]:
    if value is None:
        return []
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise TypeError("build.options must be an array of tables")
    options: List[Option] = []
    for index, entry in enumerate(value):
        label = f"build.options[{index}]"
        if not isinstance(entry, Mapping):
            raise TypeError(f"{label} must be a table")
        reject_unknown_keys(entry, OPTION_KEYS, label=label)
        kind_value = entry.get("kind", OptionKind.ARBITRARY.value)
        try:
            kind = OptionKind(str(kind_value).lower())
        except ValueError:
            allowed = ", ".join(kind.value for kind in OptionKind)
            raise ValueError(f"{label}.kind must be one of: {allowed}") from None
        option_value = entry.get("value")
        options.append(Option(kind, entry.get("name"), None if option_value is None else str(option_value)))
    return options


def parse_environment(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise TypeError("build.env must be a table of strings")
    return {str(key): str(item) for key, item in value.items()}


def parse_toolchains(value: Any) -> ToolchainRegistry | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeError("[toolchains] must be a table of toolchain definitions")
    registry = ToolchainRegistry.with_builtins()
    for name, data in value.items():
        registry.register(ToolchainDefinition.from_mapping(str(name), data))
    return registry


def apply_build_section(config: BuildConfig, data: Mapping[str, Any], *, base_dir: Path) -> BuildConfig:
    """Replay the settings of a ``[build]`` table onto ``config``."""

    reject_unknown_keys(data, BUILD_KEYS, label="[build]")

    if "shared" in data:
        if normalize_bool(data["shared"], field_name="build.shared"):
            config.enable_shared()
        else:
            config.disable_shared()
    if "static" in data:
        if normalize_bool(data["static"], field_name="build.static"):
            config.enable_static()
        else:
            config.disable_static()
    if "insource" in data:
        config.insource(normalize_bool(data["insource"], field_name="build.insource"))
    if "fast_build" in data:
        config.fast_build(normalize_bool(data["fast_build"], field_name="build.fast_build"))

    reconf = _optional_str(data, "reconf")
    if reconf is not None:
        config.reconf(reconf)
    target = _optional_str(data, "target")
    if target is not None:
        config.target(target)
    host = _optional_str(data, "host")
    if host is not None:
        config.host(host)
    if data.get("out_dir") is not None:
        config.out_dir(_resolve_path(base_dir, data["out_dir"], field_name="build.out_dir"))

    for flag in normalize_string_list(data.get("cflags"), field_name="build.cflags"):
        config.cflag(flag)
    for flag in normalize_string_list(data.get("cxxflags"), field_name="build.cxxflags"):
        config.cxxflag(flag)
    for flag in normalize_string_list(data.get("ldflags"), field_name="build.ldflags"):
        config.ldflag(flag)
    for make_target in normalize_string_list(data.get("make_targets"), field_name="build.make_targets"):
        config.make_target(make_target)
    if data.get("make_args") is not None:
        config.make_args(normalize_string_list(data["make_args"], field_name="build.make_args"))
    for name in normalize_string_list(data.get("forbid"), field_name="build.forbid"):
        config.forbid(name)

    for key, value in parse_environment(data.get("env")).items():
        config.env(key, value)
    for option in parse_options(data.get("options")):
        config.settings.options.append(option)
    return config


def load_build_config(
    path: Path,
    *,
    source: str | Path | None = None,
    **kwargs: Any,
) -> BuildConfig:
    """Create a :class:`BuildConfig` from the file at ``path``.

    ``source`` overrides ``build.source``; relative paths in the file are
    taken relative to the file's directory.  Remaining keyword arguments go to
    the :class:`BuildConfig` constructor.
    """

    data = load_config_file(path)
    reject_unknown_keys(data, FILE_KEYS, label=f"Configuration file '{path}'")
    section = data.get("build")
    if not isinstance(section, Mapping):
        raise ValueError(f"[build] section is required in '{path}'")

    base_dir = path.parent
    if source is not None:
        source_dir = Path(source)
    elif section.get("source") is not None:
        source_dir = _resolve_path(base_dir, section["source"], field_name="build.source")
    else:
        raise ValueError("build.source is required when no source directory is given")

    registry = parse_toolchains(data.get("toolchains"))
    if registry is not None and kwargs.get("compilers") is None:
        kwargs["compilers"] = ToolchainCompilerProvider(environ=kwargs.get("environ"), registry=registry)

    config = BuildConfig(source_dir, **kwargs)
    return apply_build_section(config, section, base_dir=base_dir)


__all__ = [
    "BUILD_KEYS",
    "apply_build_section",
    "load_build_config",
    "parse_environment",
    "parse_options",
    "parse_toolchains",
]
