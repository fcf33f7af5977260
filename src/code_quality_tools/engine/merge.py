"""
Merge engine — per (module, tool) applicability and effective settings.

Precedence, evaluated strictly in this order:
1. module is in ``ignored_modules``      -> skip (absolute)
2. tool ``enabled`` is false             -> skip
3. module has none of the tool's required capabilities -> skip
4. applicable: optional overrides fall back to ``GlobalPolicy.fail_early``;
   report formats always come from the global policy.
5. tools that need an external runtime for non-native modules are still
   emitted when it is missing, carrying a ``RuntimeUnavailable`` advisory.

Every function here is pure: identical inputs always produce equal outputs.
"""

from __future__ import annotations

from collections.abc import Set
from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, Final

from code_quality_tools.capabilities.probe import (
    Capability,
    ModuleDescriptor,
    has_any_capability,
    runtime_available,
)
from code_quality_tools.constants import (
    TOOL_CHECKSTYLE,
    TOOL_DETEKT,
    TOOL_KOTLIN,
    TOOL_KTLINT,
    TOOL_LINT,
    TOOL_PRIORITY,
)
from code_quality_tools.policy.model import GlobalPolicy, PolicySet, ToolSettings

JSONScalar = str | int | float | bool | None
OptionValue = JSONScalar | tuple[str, ...]


class SkipReason(StrEnum):
    IGNORED_MODULE = "ignored_module"
    DISABLED = "disabled"
    UNSUPPORTED_MODULE = "unsupported_module"


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Static applicability rules for one tool."""

    tool: str
    required_capabilities: frozenset[Capability] = frozenset()
    native_capabilities: frozenset[Capability] = frozenset()
    runtime_capability: Capability | None = None

    def needs_runtime(self, module: ModuleDescriptor) -> bool:
        if self.runtime_capability is None:
            return False
        return not has_any_capability(module, self.native_capabilities)


TOOL_SPECS: Final[dict[str, ToolSpec]] = {
    TOOL_CHECKSTYLE: ToolSpec(
        tool=TOOL_CHECKSTYLE,
        required_capabilities=frozenset({Capability.JAVA, Capability.ANDROID}),
    ),
    # Android modules without Kotlin still get detekt; they need the standalone
    # analyzer runtime and carry a RuntimeUnavailable advisory when it is absent.
    TOOL_DETEKT: ToolSpec(
        tool=TOOL_DETEKT,
        required_capabilities=frozenset({Capability.KOTLIN, Capability.ANDROID}),
        native_capabilities=frozenset({Capability.KOTLIN}),
        runtime_capability=Capability.ANALYZER_RUNTIME,
    ),
    TOOL_KTLINT: ToolSpec(
        tool=TOOL_KTLINT,
        required_capabilities=frozenset({Capability.KOTLIN}),
    ),
    TOOL_KOTLIN: ToolSpec(
        tool=TOOL_KOTLIN,
        required_capabilities=frozenset({Capability.KOTLIN}),
    ),
    TOOL_LINT: ToolSpec(
        tool=TOOL_LINT,
        required_capabilities=frozenset({Capability.ANDROID, Capability.JAVA}),
        native_capabilities=frozenset({Capability.ANDROID}),
        runtime_capability=Capability.LINT_RUNTIME,
    ),
}


@dataclass(frozen=True, slots=True)
class RuntimeUnavailable:
    """Non-fatal advisory: the tool's runtime could not be confirmed at configuration time."""

    module_name: str
    tool: str
    runtime: Capability

    @property
    def message(self) -> str:
        return (
            f"{self.module_name}: {self.tool} requires runtime {self.runtime.value!r}, "
            "which was not detected; execution is expected to fail"
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "module": self.module_name,
            "tool": self.tool,
            "runtime": self.runtime.value,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class EffectiveSettings:
    """Fully resolved configuration for one (module, tool) pair."""

    tool: str
    tool_version: str
    config_file: str | None
    fail_on: bool
    verbose: bool
    xml_reports: bool
    html_reports: bool
    options: tuple[tuple[str, OptionValue], ...] = ()

    def option(self, name: str, default: OptionValue = None) -> OptionValue:
        for key, value in self.options:
            if key == name:
                return value
        return default

    def to_dict(self) -> dict[str, object]:
        return {
            "tool": self.tool,
            "tool_version": self.tool_version,
            "config_file": self.config_file,
            "fail_on": self.fail_on,
            "verbose": self.verbose,
            "xml_reports": self.xml_reports,
            "html_reports": self.html_reports,
            "options": {
                key: list(value) if isinstance(value, tuple) else value
                for key, value in self.options
            },
        }


@dataclass(frozen=True, slots=True)
class SkipDecision:
    """Normal outcome when a tool does not apply to a module."""

    applicable: ClassVar[bool] = False

    module_name: str
    tool: str
    reason: SkipReason


@dataclass(frozen=True, slots=True)
class Applicable:
    applicable: ClassVar[bool] = True

    module_name: str
    tool: str
    settings: EffectiveSettings
    warnings: tuple[RuntimeUnavailable, ...] = ()


MergeDecision = SkipDecision | Applicable


def resolve_tool(
    module: ModuleDescriptor,
    settings: ToolSettings,
    policy: GlobalPolicy,
    *,
    available_runtimes: Set[Capability] = frozenset(),
    spec: ToolSpec | None = None,
) -> MergeDecision:
    """Decide whether ``settings.tool`` applies to ``module`` and resolve its settings."""
    tool = settings.tool
    tool_spec = spec if spec is not None else TOOL_SPECS[tool]

    if policy.is_ignored(module.name):
        return SkipDecision(module_name=module.name, tool=tool, reason=SkipReason.IGNORED_MODULE)
    if not settings.enabled:
        return SkipDecision(module_name=module.name, tool=tool, reason=SkipReason.DISABLED)
    if tool_spec.required_capabilities and not has_any_capability(
        module, tool_spec.required_capabilities
    ):
        return SkipDecision(
            module_name=module.name, tool=tool, reason=SkipReason.UNSUPPORTED_MODULE
        )

    effective = resolve_settings(settings, policy)

    warnings: tuple[RuntimeUnavailable, ...] = ()
    runtime = tool_spec.runtime_capability
    if (
        runtime is not None
        and tool_spec.needs_runtime(module)
        and not runtime_available(module, runtime, available_runtimes)
    ):
        warnings = (RuntimeUnavailable(module_name=module.name, tool=tool, runtime=runtime),)

    return Applicable(module_name=module.name, tool=tool, settings=effective, warnings=warnings)


def resolve_settings(settings: ToolSettings, policy: GlobalPolicy) -> EffectiveSettings:
    """Apply override precedence; absent overrides resolve to ``policy.fail_early``."""
    fail_on = (
        settings.failure_override if settings.failure_override is not None else policy.fail_early
    )
    # Verbosity tracks the same global flag as failure.
    verbose = (
        settings.report_verbosity_override
        if settings.report_verbosity_override is not None
        else policy.fail_early
    )
    options = tuple(sorted(settings.extras().items()))
    return EffectiveSettings(
        tool=settings.tool,
        tool_version=settings.tool_version,
        config_file=settings.config_file,
        fail_on=fail_on,
        verbose=verbose,
        xml_reports=policy.xml_reports,
        html_reports=policy.html_reports,
        options=options,  # type: ignore[arg-type]
    )


class MergeEngine:
    """Resolves every (module, tool) pair against one immutable ``PolicySet``."""

    __slots__ = ("_policies", "_runtimes", "_specs")

    def __init__(
        self,
        policies: PolicySet,
        *,
        available_runtimes: Set[Capability] = frozenset(),
        specs: dict[str, ToolSpec] | None = None,
    ) -> None:
        self._policies = policies
        self._runtimes = frozenset(available_runtimes)
        self._specs = dict(TOOL_SPECS if specs is None else specs)

    @property
    def policies(self) -> PolicySet:
        return self._policies

    @property
    def available_runtimes(self) -> frozenset[Capability]:
        return self._runtimes

    def resolve(self, module: ModuleDescriptor, tool: str) -> MergeDecision:
        return resolve_tool(
            module,
            self._policies.settings_for(tool),
            self._policies.policy,
            available_runtimes=self._runtimes,
            spec=self._specs[tool],
        )

    def resolve_module(self, module: ModuleDescriptor) -> tuple[MergeDecision, ...]:
        """Decisions for every tool, in composition priority order."""
        return tuple(self.resolve(module, tool) for tool in TOOL_PRIORITY)


__all__ = [
    "Applicable",
    "EffectiveSettings",
    "MergeDecision",
    "MergeEngine",
    "RuntimeUnavailable",
    "SkipDecision",
    "SkipReason",
    "TOOL_SPECS",
    "ToolSpec",
    "resolve_settings",
    "resolve_tool",
]
