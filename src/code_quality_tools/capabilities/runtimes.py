"""Detection of external analysis runtimes on the local machine.

File: src/code_quality_tools/capabilities/runtimes.py

Purpose
- Detect whether the standalone lint and detekt executables are installed.
- Return the detected runtimes as capabilities so callers can hand them to the
  merge engine explicitly.

Detection is offline (no network calls); only ``--version`` is run locally.
"""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from typing import Final

from code_quality_tools.capabilities.probe import Capability

# Executable names probed for each runtime capability.
RUNTIME_BINARY_NAMES: Final[dict[Capability, str]] = {
    Capability.LINT_RUNTIME: "lint",
    Capability.ANALYZER_RUNTIME: "detekt",
}

_DETECTION_ORDER: Final[tuple[Capability, ...]] = (
    Capability.LINT_RUNTIME,
    Capability.ANALYZER_RUNTIME,
)


@dataclass(frozen=True, slots=True)
class RuntimeInfo:
    """Metadata about a detected analysis runtime."""

    capability: Capability
    binary_path: str
    version: str | None


def detect_runtime(capability: Capability) -> RuntimeInfo | None:
    """Detect a single runtime; ``None`` when its executable is not on PATH."""
    binary = RUNTIME_BINARY_NAMES.get(capability)
    if binary is None:
        return None
    path = shutil.which(binary)
    if path is None:
        return None
    return RuntimeInfo(capability=capability, binary_path=path, version=_get_version(path))


def detect_runtime_infos() -> list[RuntimeInfo]:
    """Detect all known runtimes in deterministic order."""
    found: list[RuntimeInfo] = []
    for capability in _DETECTION_ORDER:
        info = detect_runtime(capability)
        if info is not None:
            found.append(info)
    return found


def detect_runtimes() -> frozenset[Capability]:
    return frozenset(info.capability for info in detect_runtime_infos())


def _get_version(binary_path: str) -> str | None:
    """Run ``binary --version`` and return the first output line, or None on any failure."""
    try:
        result = subprocess.run(
            [binary_path, "--version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip().splitlines()[0]
        return None
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        return None


__all__ = [
    "RUNTIME_BINARY_NAMES",
    "RuntimeInfo",
    "detect_runtime",
    "detect_runtime_infos",
    "detect_runtimes",
]
