"""Merging of compiler-default, ambient and user flags."""
from __future__ import annotations

from typing import Iterable, List

FlagSource = str | Iterable[str] | None


def _segment(value: FlagSource) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return " ".join(token for token in (str(item).strip() for item in value) if token)


def assemble_flags(default: FlagSource, environment: FlagSource, user: FlagSource) -> str:
    """Join the three flag segments as ``default environment user``.

    Later flags win for the tools that honor last-one-wins semantics, so the
    caller's flags override both the ambient ``$CFLAGS`` and the compiler
    defaults.
    """

    segments: List[str] = [_segment(default), _segment(environment), _segment(user)]
    return " ".join(segment for segment in segments if segment)


def assemble_linker_flags(environment: FlagSource, user: FlagSource) -> str | None:
    """Like :func:`assemble_flags` but without defaults.

    Returns ``None`` when there is neither an ambient value nor a user flag, in
    which case no ``LDFLAGS`` entry should be exported at all.
    """

    if environment is None and not _segment(user):
        return None
    return assemble_flags(None, environment, user)


__all__ = ["assemble_flags", "assemble_linker_flags"]
