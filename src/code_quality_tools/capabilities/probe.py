"""Capability predicates over module descriptors.

All predicates are pure functions of the descriptor (plus an explicit runtime set
where noted); they never consult the environment.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Set
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final

from code_quality_tools.errors import DescriptorError

_MODULE_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class Capability(StrEnum):
    JAVA = "java"
    KOTLIN = "kotlin"
    ANDROID = "android"
    LINT_RUNTIME = "lint_runtime"
    ANALYZER_RUNTIME = "analyzer_runtime"


RUNTIME_CAPABILITIES: Final[frozenset[Capability]] = frozenset(
    {Capability.LINT_RUNTIME, Capability.ANALYZER_RUNTIME}
)

# Build-system plugin ids that imply a capability.
PLUGIN_CAPABILITIES: Final[dict[str, Capability]] = {
    "java": Capability.JAVA,
    "java-library": Capability.JAVA,
    "java-gradle-plugin": Capability.JAVA,
    "com.android.library": Capability.ANDROID,
    "com.android.application": Capability.ANDROID,
    "com.android.test": Capability.ANDROID,
    "com.android.instantapp": Capability.ANDROID,
    "kotlin": Capability.KOTLIN,
    "kotlin-android": Capability.KOTLIN,
    "org.jetbrains.kotlin.multiplatform": Capability.KOTLIN,
    "kotlin-platform-common": Capability.KOTLIN,
    "kotlin-platform-jvm": Capability.KOTLIN,
    "kotlin-platform-js": Capability.KOTLIN,
    "org.jetbrains.kotlin.jvm": Capability.KOTLIN,
    "org.jetbrains.kotlin.android": Capability.KOTLIN,
}


@dataclass(frozen=True, slots=True)
class ModuleDescriptor:
    """Read-only view of one module as reported by the build-graph enumerator."""

    name: str
    capabilities: frozenset[Capability] = field(default_factory=frozenset)
    path: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _MODULE_NAME_RE.fullmatch(self.name):
            raise DescriptorError(f"invalid module name: {self.name!r}")
        try:
            normalized = frozenset(Capability(item) for item in self.capabilities)
        except ValueError as exc:
            raise DescriptorError(f"module {self.name!r}: {exc}") from exc
        object.__setattr__(self, "capabilities", normalized)
        if self.path is not None and not self.path.strip():
            raise DescriptorError(f"module {self.name!r}: path must not be empty")

    @property
    def directory(self) -> str:
        """Module directory relative to the pipeline root."""
        return self.path if self.path is not None else self.name


def has_capability(module: ModuleDescriptor, capability: Capability) -> bool:
    return capability in module.capabilities


def has_any_capability(module: ModuleDescriptor, capabilities: Iterable[Capability]) -> bool:
    return any(has_capability(module, capability) for capability in capabilities)


def is_java_module(module: ModuleDescriptor) -> bool:
    return has_capability(module, Capability.JAVA)


def is_kotlin_module(module: ModuleDescriptor) -> bool:
    return has_capability(module, Capability.KOTLIN)


def is_android_module(module: ModuleDescriptor) -> bool:
    return has_capability(module, Capability.ANDROID)


def supports_checkstyle(module: ModuleDescriptor) -> bool:
    return is_java_module(module) or is_android_module(module)


def runtime_available(
    module: ModuleDescriptor,
    runtime: Capability,
    available_runtimes: Set[Capability] = frozenset(),
) -> bool:
    """Return whether ``runtime`` is declared by the module or supplied by the caller."""
    return has_capability(module, runtime) or runtime in available_runtimes


def capabilities_from_plugins(plugin_ids: Iterable[str]) -> frozenset[Capability]:
    """Map applied build-system plugin ids to capabilities; unknown ids are ignored."""
    found: set[Capability] = set()
    for plugin_id in plugin_ids:
        capability = PLUGIN_CAPABILITIES.get(plugin_id.strip())
        if capability is not None:
            found.add(capability)
    return frozenset(found)


__all__ = [
    "Capability",
    "ModuleDescriptor",
    "PLUGIN_CAPABILITIES",
    "RUNTIME_CAPABILITIES",
    "capabilities_from_plugins",
    "has_any_capability",
    "has_capability",
    "is_android_module",
    "is_java_module",
    "is_kotlin_module",
    "runtime_available",
    "supports_checkstyle",
]
