"""Configure option model and its ``--kind-name[=value]`` encoding."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence
import logging
import re

logger = logging.getLogger(__name__)


class OptionKind(str, Enum):
    ENABLE = "enable"
    DISABLE = "disable"
    WITH = "with"
    WITHOUT = "without"
    ARBITRARY = "arbitrary"

    @property
    def prefix(self) -> str:
        return "" if self is OptionKind.ARBITRARY else f"{self.value}-"


_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.+][A-Za-z0-9_.+-]*$")

_PREFIXED_KINDS = (
    OptionKind.ENABLE,
    OptionKind.DISABLE,
    OptionKind.WITH,
    OptionKind.WITHOUT,
)

_KIND_PREFIXES = tuple(kind.prefix for kind in _PREFIXED_KINDS)


@dataclass(frozen=True, slots=True)
class Option:
    kind: OptionKind
    name: str
    value: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _NAME_PATTERN.match(self.name):
            raise ValueError(
                f"Invalid configure option name {self.name!r}: "
                "use letters, digits, '_', '.', '+' or '-' and do not start with '-'"
            )
        if self.kind is OptionKind.ARBITRARY and self.name.startswith(_KIND_PREFIXES):
            raise ValueError(
                f"Configure option name {self.name!r} starts with a kind prefix: "
                "use the matching enable/disable/with/without option instead"
            )
        if self.value is not None and not isinstance(self.value, str):
            raise TypeError(f"Configure option '{self.name}' value must be a string")

    @property
    def is_host(self) -> bool:
        return self.kind is OptionKind.ARBITRARY and self.name == "host"


@dataclass(frozen=True, slots=True)
class EncodedOptions:
    tokens: tuple[str, ...]
    explicit_host: bool


def encode_option(option: Option) -> str:
    token = f"--{option.kind.prefix}{option.name}"
    if option.value is not None:
        token = f"{token}={option.value}"
    return token


def encode_options(options: Iterable[Option]) -> EncodedOptions:
    """Render options in order, noting whether the caller passed ``host`` itself."""

    tokens: List[str] = []
    explicit_host = False
    for option in options:
        if option.is_host:
            explicit_host = True
        tokens.append(encode_option(option))
    return EncodedOptions(tokens=tuple(tokens), explicit_host=explicit_host)


def parse_option(token: str) -> Option:
    """Inverse of :func:`encode_option`.

    A token whose name starts with ``enable-``, ``disable-``, ``with-`` or
    ``without-`` always parses to that kind; such names are not valid for
    arbitrary options, which keeps the two functions exact inverses.
    """

    if not token.startswith("--"):
        raise ValueError(f"Configure option must start with '--': {token!r}")
    body = token[2:]
    key, separator, value = body.partition("=")
    for kind in _PREFIXED_KINDS:
        if key.startswith(kind.prefix) and len(key) > len(kind.prefix):
            return Option(kind, key[len(kind.prefix):], value if separator else None)
    return Option(OptionKind.ARBITRARY, key, value if separator else None)


def _argument_key(argument: str) -> str:
    key = argument.split("=", 1)[0]
    return key[2:] if key.startswith("--") else key


def filter_forbidden(arguments: Sequence[str], forbidden: Iterable[str]) -> List[str]:
    """Drop arguments whose name (text before the first ``=``) is forbidden.

    Names are compared without their leading ``--``; the match is exact, so
    forbidding ``with-zlib`` keeps ``--with-zlib2``.
    """

    blocked = {_argument_key(name) for name in forbidden}
    if not blocked:
        return list(arguments)
    kept: List[str] = []
    for argument in arguments:
        if _argument_key(argument) in blocked:
            logger.debug("dropping forbidden configure argument %s", argument)
            continue
        kept.append(argument)
    return kept


__all__ = [
    "EncodedOptions",
    "Option",
    "OptionKind",
    "encode_option",
    "encode_options",
    "filter_forbidden",
    "parse_option",
]
