"""
code-quality-tools — configuration schema and validation.

File: src/code_quality_tools/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types and enums per section and per tool.
- camelCase/legacy key normalization, profile overlays and deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Keep optional tool overrides as ``None`` so they inherit the global policy at merge time.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from code_quality_tools.constants import (
    CONFIG_SCHEMA_VERSION,
    TOOL_CHECKSTYLE,
    TOOL_DETEKT,
    TOOL_KOTLIN,
    TOOL_KTLINT,
    TOOL_LINT,
    TOOL_PRIORITY,
)
from code_quality_tools.errors import ConfigurationError

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "lenient")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Keys accepted under another name; applied after camelCase normalization.
KEY_ALIASES: Final[dict[str, str]] = {
    "ignored_modules": "ignore_projects",
    "show_violations": "report_verbosity_override",
    "config": "config_file",
    "config_file_ref": "config_file",
    "baseline_file_name": "baseline_file",
}

_FieldKind = Literal["bool", "optional_bool", "str", "optional_path", "globs"]

_COMMON_TOOL_FIELDS: Final[dict[str, _FieldKind]] = {
    "enabled": "bool",
    "tool_version": "str",
    "config_file": "optional_path",
    "failure_override": "optional_bool",
    "report_verbosity_override": "optional_bool",
}

TOOL_FIELDS: Final[dict[str, dict[str, _FieldKind]]] = {
    TOOL_CHECKSTYLE: {
        **_COMMON_TOOL_FIELDS,
        "source": "str",
        "include": "globs",
        "exclude": "globs",
    },
    TOOL_DETEKT: {
        **_COMMON_TOOL_FIELDS,
        "input": "str",
        "baseline_file": "optional_path",
        "build_upon_default_config": "bool",
        "parallel": "bool",
    },
    TOOL_KTLINT: {
        **_COMMON_TOOL_FIELDS,
        "include": "globs",
        "exclude": "globs",
        "editorconfig": "str",
    },
    TOOL_KOTLIN: dict(_COMMON_TOOL_FIELDS),
    TOOL_LINT: {
        **_COMMON_TOOL_FIELDS,
        "warnings_as_errors": "optional_bool",
        "check_all_warnings": "optional_bool",
        "absolute_paths": "optional_bool",
        "baseline_file": "optional_path",
        "check_release_builds": "optional_bool",
        "check_test_sources": "optional_bool",
        "check_dependencies": "optional_bool",
        "text_report": "optional_bool",
        "text_output": "str",
    },
}

_POLICY_FIELDS: Final[dict[str, _FieldKind]] = {
    "fail_early": "bool",
    "xml_reports": "bool",
    "html_reports": "bool",
    "ignore_projects": "globs",
}

# Optional boolean fields have no scalar default, so env bindings cannot be inferred.
OPTIONAL_BOOL_FIELDS: Final[tuple[tuple[str, ...], ...]] = tuple(
    ("tools", tool, field_name)
    for tool in TOOL_PRIORITY
    for field_name, kind in TOOL_FIELDS[tool].items()
    if kind == "optional_bool"
)
OPTIONAL_PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = tuple(
    ("tools", tool, field_name)
    for tool in TOOL_PRIORITY
    for field_name, kind in TOOL_FIELDS[tool].items()
    if kind == "optional_path"
)


class MetaConfig(TypedDict):
    schema_version: int


class PolicyConfig(TypedDict):
    fail_early: bool
    xml_reports: bool
    html_reports: bool
    ignore_projects: list[str]


class ToolConfig(TypedDict):
    enabled: bool
    tool_version: str
    config_file: str | None
    failure_override: bool | None
    report_verbosity_override: bool | None


class CheckstyleConfig(ToolConfig):
    source: str
    include: list[str]
    exclude: list[str]


class DetektConfig(ToolConfig):
    input: str
    baseline_file: str | None
    build_upon_default_config: bool
    parallel: bool


class KtlintConfig(ToolConfig):
    include: list[str]
    exclude: list[str]
    editorconfig: str


class LintConfig(ToolConfig):
    warnings_as_errors: bool | None
    check_all_warnings: bool | None
    absolute_paths: bool | None
    baseline_file: str | None
    check_release_builds: bool | None
    check_test_sources: bool | None
    check_dependencies: bool | None
    text_report: bool | None
    text_output: str


class ToolsConfig(TypedDict):
    checkstyle: CheckstyleConfig
    detekt: DetektConfig
    ktlint: KtlintConfig
    kotlin: ToolConfig
    lint: LintConfig


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]


class ProfileOverlay(TypedDict, total=False):
    policy: dict[str, object]
    tools: dict[str, object]
    observability: dict[str, object]


class CodeQualityConfig(TypedDict):
    meta: MetaConfig
    policy: PolicyConfig
    tools: ToolsConfig
    observability: ObservabilityConfig
    profiles: NotRequired[dict[str, ProfileOverlay]]


DEFAULT_CONFIG: Final[CodeQualityConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "policy": {
        "fail_early": True,
        "xml_reports": True,
        "html_reports": False,
        "ignore_projects": [],
    },
    "tools": {
        "checkstyle": {
            "enabled": True,
            "tool_version": "10.12.4",
            "config_file": "config/checkstyle/checkstyle.xml",
            "failure_override": None,
            "report_verbosity_override": None,
            "source": "src",
            "include": ["**/*.java"],
            "exclude": ["**/gen/**"],
        },
        "detekt": {
            "enabled": True,
            "tool_version": "1.23.1",
            "config_file": "config/detekt/detekt.yml",
            "failure_override": None,
            "report_verbosity_override": None,
            "input": "src",
            "baseline_file": None,
            "build_upon_default_config": False,
            "parallel": False,
        },
        "ktlint": {
            "enabled": True,
            "tool_version": "1.0.1",
            "config_file": None,
            "failure_override": None,
            "report_verbosity_override": None,
            "include": ["**/*.kt", "**/*.kts"],
            "exclude": ["build/", "generated/", "src/test/snapshots/"],
            "editorconfig": ".editorconfig",
        },
        "kotlin": {
            "enabled": True,
            "tool_version": "",
            "config_file": None,
            "failure_override": None,
            "report_verbosity_override": None,
        },
        "lint": {
            "enabled": True,
            "tool_version": "",
            "config_file": None,
            "failure_override": None,
            "report_verbosity_override": None,
            "warnings_as_errors": None,
            "check_all_warnings": None,
            "absolute_paths": None,
            "baseline_file": None,
            "check_release_builds": None,
            "check_test_sources": None,
            "check_dependencies": None,
            "text_report": None,
            "text_output": "stdout",
        },
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "text",
    },
    "profiles": {
        "strict": {
            "policy": {"fail_early": True},
        },
        "lenient": {
            "policy": {"fail_early": False},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ConfigurationError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> CodeQualityConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade code-quality.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the code-quality-tools runtime"
        )
    return "schema version is current"


def normalize_keys(payload: Mapping[str, object]) -> dict[str, Any]:
    """Return ``payload`` with camelCase and legacy keys rewritten to canonical snake_case.

    Profile names are kept verbatim; everything below them is normalized.
    """

    return _normalize_mapping(payload, keep_names=False)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = _deep_copy_mapping(config)
    if profile is None:
        return materialized

    selected = profile.strip()
    if not selected:
        return materialized

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping) or selected not in profiles_raw:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )

    overlay_raw = profiles_raw[selected]
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )

    merged = merge_config(materialized, overlay_raw)
    return assert_valid_config(merged)


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(normalize_keys(root), issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    required = {"meta", "policy", "tools", "observability"}
    _reject_unknown_keys(payload, required | {"profiles"}, "", issues)
    _require_keys(payload, required, "", issues)

    out: dict[str, Any] = {}

    meta = _section(payload, "meta", "", issues)
    if meta is not None:
        out["meta"] = _validate_meta(meta, "meta", issues)

    policy = _section(payload, "policy", "", issues)
    if policy is not None:
        out["policy"] = _validate_fields(policy, "policy", issues, _POLICY_FIELDS, partial=False)

    tools = _section(payload, "tools", "", issues)
    if tools is not None:
        out["tools"] = _validate_tools(tools, "tools", issues, partial=False)

    observability = _section(payload, "observability", "", issues)
    if observability is not None:
        out["observability"] = _validate_observability(
            observability, "observability", issues, partial=False
        )

    profiles = _section(payload, "profiles", "", issues)
    if profiles is not None:
        out["profiles"] = _validate_profiles(profiles, "profiles", issues)

    return out


def _section(
    payload: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> dict[str, object] | None:
    raw = payload.get(key)
    if raw is None:
        return None
    return _as_object(raw, _join(path, key), issues)


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    raw = payload.get("schema_version")
    if raw is None:
        return out
    field_path = _join(path, "schema_version")
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        issues.add(field_path, "expected integer >= 1")
        return out
    out["schema_version"] = raw
    if raw != ConfigSchemaVersion:
        issues.add(field_path, migration_guidance(raw))
    return out


def _validate_tools(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = set(TOOL_PRIORITY)
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for tool in TOOL_PRIORITY:
        section = _section(payload, tool, path, issues)
        if section is None:
            continue
        out[tool] = _validate_fields(
            section, _join(path, tool), issues, TOOL_FIELDS[tool], partial=partial
        )
    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"log_level", "log_format"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        parsed_level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if parsed_level is not None:
            out["log_level"] = parsed_level
    if "log_format" in payload:
        parsed_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if parsed_format is not None:
            out["log_format"] = parsed_format
    return out


def _validate_profiles(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = _as_object(payload[profile_name], profile_path, issues)
        if overlay is None:
            continue

        _reject_unknown_keys(overlay, {"policy", "tools", "observability"}, profile_path, issues)
        validated: dict[str, Any] = {}
        policy = _section(overlay, "policy", profile_path, issues)
        if policy is not None:
            validated["policy"] = _validate_fields(
                policy, _join(profile_path, "policy"), issues, _POLICY_FIELDS, partial=True
            )
        tools = _section(overlay, "tools", profile_path, issues)
        if tools is not None:
            validated["tools"] = _validate_tools(
                tools, _join(profile_path, "tools"), issues, partial=True
            )
        observability = _section(overlay, "observability", profile_path, issues)
        if observability is not None:
            validated["observability"] = _validate_observability(
                observability, _join(profile_path, "observability"), issues, partial=True
            )
        out[profile_name] = validated
    return out


def _validate_fields(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    fields: Mapping[str, _FieldKind],
    *,
    partial: bool,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, set(fields), path, issues)
    if not partial:
        required = {name for name, kind in fields.items() if not kind.startswith("optional")}
        _require_keys(payload, required, path, issues)

    out: dict[str, Any] = {}
    for name in sorted(fields):
        if name not in payload:
            if not partial and fields[name].startswith("optional"):
                out[name] = None
            continue
        field_path = _join(path, name)
        parsed, ok = _coerce_field(payload[name], fields[name], field_path, issues)
        if ok:
            out[name] = parsed
    return out


def _coerce_field(
    value: object,
    kind: _FieldKind,
    path: str,
    issues: _IssueCollector,
) -> tuple[object, bool]:
    if kind == "bool":
        if isinstance(value, bool):
            return value, True
        issues.add(path, f"expected boolean, got {type(value).__name__}")
        return None, False

    if kind == "optional_bool":
        if value is None or isinstance(value, bool):
            return value, True
        issues.add(path, f"expected boolean or unset, got {type(value).__name__}")
        return None, False

    if kind == "str":
        if isinstance(value, str):
            return value.strip(), True
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None, False

    if kind == "optional_path":
        # Empty strings pass through; the policy model rejects them explicitly.
        if value is None:
            return None, True
        if not isinstance(value, str):
            issues.add(path, f"expected path string or unset, got {type(value).__name__}")
            return None, False
        if "\x00" in value:
            issues.add(path, "must not contain NUL bytes")
            return None, False
        return value.strip(), True

    if isinstance(value, str) or not isinstance(value, Sequence):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None, False
    globs: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            issues.add(f"{path}[{index}]", "expected non-empty string")
            return None, False
        globs.append(item.strip())
    return globs, True


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _normalize_mapping(payload: Mapping[str, object], *, keep_names: bool) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for raw_key in sorted(payload, key=str):
        value = payload[raw_key]
        if not isinstance(raw_key, str):
            out[raw_key] = value
            continue
        key = raw_key if keep_names else _normalize_key(raw_key)
        key = key if keep_names else KEY_ALIASES.get(key, key)
        if isinstance(value, Mapping):
            out[key] = _normalize_mapping(value, keep_names=(key == "profiles" and not keep_names))
        else:
            out[key] = _deep_copy_value(value)
    return out


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(value):
        out[key] = _deep_copy_value(value[key])
    return out


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "CodeQualityConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "KEY_ALIASES",
    "OPTIONAL_BOOL_FIELDS",
    "OPTIONAL_PATH_FIELDS",
    "ProfileOverlay",
    "TOOL_FIELDS",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "normalize_keys",
    "validate_config",
]
