"""Policy model: one global policy plus one immutable settings variant per tool.

Every per-tool settings class shares the ``ToolSettings`` base record and adds a
tool-specific payload. Optional overrides stay ``None`` here; resolving them
against the global policy is the merge engine's job.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

from code_quality_tools.constants import (
    TOOL_CHECKSTYLE,
    TOOL_DETEKT,
    TOOL_KOTLIN,
    TOOL_KTLINT,
    TOOL_LINT,
    TOOL_PRIORITY,
)
from code_quality_tools.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class GlobalPolicy:
    """Process-wide defaults applied to every tool."""

    fail_early: bool = True
    xml_reports: bool = True
    html_reports: bool = False
    ignored_modules: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if isinstance(self.ignored_modules, str):
            raise ConfigurationError("policy.ignore_projects: expected a list of module names")
        object.__setattr__(self, "ignored_modules", frozenset(self.ignored_modules))

    def is_ignored(self, module_name: str) -> bool:
        return module_name in self.ignored_modules


@dataclass(frozen=True)
class ToolSettings:
    """Fields shared by every tool's settings."""

    tool: ClassVar[str] = ""
    path_fields: ClassVar[tuple[str, ...]] = ("config_file",)
    glob_fields: ClassVar[tuple[str, ...]] = ()

    enabled: bool = True
    tool_version: str = ""
    config_file: str | None = None
    failure_override: bool | None = None
    report_verbosity_override: bool | None = None

    def __post_init__(self) -> None:
        for name in self.path_fields:
            value = getattr(self, name)
            if value is not None and not value.strip():
                raise ConfigurationError(
                    f"tools.{self.tool}.{name}: path is set to an empty string; "
                    "leave it unset to disable it"
                )
        for name in self.glob_fields:
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def extras(self) -> dict[str, object]:
        """Tool-specific payload, passed through to execution units verbatim."""
        base = _BASE_FIELD_NAMES
        return {item.name: getattr(self, item.name) for item in fields(self) if item.name not in base}


_BASE_FIELD_NAMES = frozenset(item.name for item in fields(ToolSettings))


@dataclass(frozen=True)
class CheckstyleSettings(ToolSettings):
    tool: ClassVar[str] = TOOL_CHECKSTYLE
    glob_fields: ClassVar[tuple[str, ...]] = ("include", "exclude")

    tool_version: str = "10.12.4"
    config_file: str | None = "config/checkstyle/checkstyle.xml"
    source: str = "src"
    include: tuple[str, ...] = ("**/*.java",)
    exclude: tuple[str, ...] = ("**/gen/**",)


@dataclass(frozen=True)
class DetektSettings(ToolSettings):
    tool: ClassVar[str] = TOOL_DETEKT
    path_fields: ClassVar[tuple[str, ...]] = ("config_file", "baseline_file")

    tool_version: str = "1.23.1"
    config_file: str | None = "config/detekt/detekt.yml"
    input: str = "src"
    baseline_file: str | None = None
    build_upon_default_config: bool = False
    parallel: bool = False


@dataclass(frozen=True)
class KtlintSettings(ToolSettings):
    tool: ClassVar[str] = TOOL_KTLINT
    glob_fields: ClassVar[tuple[str, ...]] = ("include", "exclude")

    tool_version: str = "1.0.1"
    include: tuple[str, ...] = ("**/*.kt", "**/*.kts")
    exclude: tuple[str, ...] = ("build/", "generated/", "src/test/snapshots/")
    editorconfig: str = ".editorconfig"


@dataclass(frozen=True)
class KotlinSettings(ToolSettings):
    tool: ClassVar[str] = TOOL_KOTLIN


@dataclass(frozen=True)
class LintSettings(ToolSettings):
    tool: ClassVar[str] = TOOL_LINT
    path_fields: ClassVar[tuple[str, ...]] = ("config_file", "baseline_file")

    warnings_as_errors: bool | None = None
    check_all_warnings: bool | None = None
    absolute_paths: bool | None = None
    baseline_file: str | None = None
    check_release_builds: bool | None = None
    check_test_sources: bool | None = None
    check_dependencies: bool | None = None
    text_report: bool | None = None
    text_output: str = "stdout"


SETTINGS_TYPES: dict[str, type[ToolSettings]] = {
    TOOL_CHECKSTYLE: CheckstyleSettings,
    TOOL_DETEKT: DetektSettings,
    TOOL_KTLINT: KtlintSettings,
    TOOL_KOTLIN: KotlinSettings,
    TOOL_LINT: LintSettings,
}


@dataclass(frozen=True, slots=True)
class PolicySet:
    """Immutable snapshot of the global policy and every tool's settings."""

    policy: GlobalPolicy = field(default_factory=GlobalPolicy)
    checkstyle: CheckstyleSettings = field(default_factory=CheckstyleSettings)
    detekt: DetektSettings = field(default_factory=DetektSettings)
    ktlint: KtlintSettings = field(default_factory=KtlintSettings)
    kotlin: KotlinSettings = field(default_factory=KotlinSettings)
    lint: LintSettings = field(default_factory=LintSettings)

    def settings_for(self, tool: str) -> ToolSettings:
        if tool not in SETTINGS_TYPES:
            raise KeyError(f"unknown tool: {tool}")
        settings: ToolSettings = getattr(self, tool)
        return settings

    def tools(self) -> tuple[ToolSettings, ...]:
        """Settings in composition priority order."""
        return tuple(self.settings_for(tool) for tool in TOOL_PRIORITY)


def build_policy(config: Mapping[str, Any]) -> PolicySet:
    """Construct a ``PolicySet`` from a validated config mapping.

    Raises ``ConfigurationError`` when a section is malformed or a path reference
    is set to the empty string.
    """
    policy_section = _mapping(config.get("policy", {}), "policy")
    global_policy = GlobalPolicy(
        fail_early=bool(policy_section.get("fail_early", True)),
        xml_reports=bool(policy_section.get("xml_reports", True)),
        html_reports=bool(policy_section.get("html_reports", False)),
        ignored_modules=frozenset(_names(policy_section.get("ignore_projects", ()))),
    )

    tools_section = _mapping(config.get("tools", {}), "tools")
    unknown_tools = sorted(set(tools_section) - set(SETTINGS_TYPES))
    if unknown_tools:
        raise ConfigurationError(f"tools: unknown tools {unknown_tools}")

    variants: dict[str, ToolSettings] = {}
    for tool in TOOL_PRIORITY:
        section = _mapping(tools_section.get(tool, {}), f"tools.{tool}")
        variants[tool] = _settings_from_mapping(SETTINGS_TYPES[tool], section)

    return PolicySet(policy=global_policy, **variants)  # type: ignore[arg-type]


def _settings_from_mapping(cls: type[ToolSettings], section: Mapping[str, Any]) -> ToolSettings:
    known = {item.name for item in fields(cls)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigurationError(f"tools.{cls.tool}: unknown settings {unknown}")
    return cls(**dict(section))


def _mapping(value: object, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{path}: expected a table")
    return value


def _names(value: object) -> Iterable[str]:
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise ConfigurationError("policy.ignore_projects: expected a list of module names")
    return tuple(str(item) for item in value)


__all__ = [
    "CheckstyleSettings",
    "DetektSettings",
    "GlobalPolicy",
    "KotlinSettings",
    "KtlintSettings",
    "LintSettings",
    "PolicySet",
    "SETTINGS_TYPES",
    "ToolSettings",
    "build_policy",
]
