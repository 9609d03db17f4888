"""Skip an unchanged configure run.

A configure run leaves ``config.status`` and ``Makefile`` behind; next to them
we keep ``configure.prev``, the rendered configure step that produced them
together with the build and host triples it was planned for.
When all three exist and the stored rendering matches the planned one byte
for byte, configure does not need to run again.
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict
import json
import logging

if TYPE_CHECKING:
    from .build import BuildStep
    from .triple import TripleMapping

logger = logging.getLogger(__name__)

STATUS_FILE = "config.status"
FINGERPRINT_FILE = "configure.prev"
MAKEFILE = "Makefile"


def render_fingerprint(step: "BuildStep", triples: "TripleMapping") -> str:
    data: Dict[str, Any] = {
        "build_triple": triples.autotools_build,
        "host_triple": triples.autotools_host,
        "command": [str(part) for part in step.command],
        "cwd": str(step.cwd),
        "env": {key: step.env[key] for key in sorted(step.env)},
    }
    return json.dumps(data, indent=2, sort_keys=True) + "\n"


class FingerprintGate:
    def __init__(self, build_dir: Path) -> None:
        self.build_dir = build_dir

    @property
    def path(self) -> Path:
        return self.build_dir / FINGERPRINT_FILE

    def artifacts_present(self) -> bool:
        return all(
            (self.build_dir / name).exists() for name in (STATUS_FILE, FINGERPRINT_FILE, MAKEFILE)
        )

    def stored(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def should_skip(self, rendered: str) -> bool:
        if not self.artifacts_present():
            return False
        return self.stored() == rendered

    def record(self, rendered: str) -> None:
        logger.debug("writing configure fingerprint to %s", self.path)
        self.path.write_text(rendered, encoding="utf-8")


__all__ = [
    "FINGERPRINT_FILE",
    "FingerprintGate",
    "MAKEFILE",
    "STATUS_FILE",
    "render_fingerprint",
]
