"""Stable constants shared across orchestration components."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
PLAN_SCHEMA_VERSION: Final[int] = 1
MANIFEST_SCHEMA_VERSION: Final[int] = 1

# Default input files (relative to the pipeline root unless overridden).
DEFAULT_CONFIG_FILE: Final[str] = "code-quality.toml"
DEFAULT_MANIFEST_FILE: Final[str] = "modules.yaml"

# Tool identities in composition priority order.
TOOL_CHECKSTYLE: Final[str] = "checkstyle"
TOOL_DETEKT: Final[str] = "detekt"
TOOL_KTLINT: Final[str] = "ktlint"
TOOL_KOTLIN: Final[str] = "kotlin"
TOOL_LINT: Final[str] = "lint"

TOOL_PRIORITY: Final[tuple[str, ...]] = (
    TOOL_CHECKSTYLE,
    TOOL_DETEKT,
    TOOL_KTLINT,
    TOOL_KOTLIN,
    TOOL_LINT,
)

# Step names in the host verification pipeline.
VERIFY_STEP_NAME: Final[str] = "check"
KOTLIN_COMPILE_STEP_NAME: Final[str] = "compileKotlin"
VERIFICATION_GROUP: Final[str] = "verification"

TASK_NAMES: Final[dict[str, str]] = {
    TOOL_CHECKSTYLE: "checkstyle",
    TOOL_DETEKT: "detektCheck",
    TOOL_KTLINT: "ktlint",
    TOOL_LINT: "lint",
}
KTLINT_FORMAT_TASK_NAME: Final[str] = "ktlintFormat"

# Report directories (relative to the module build directory).
DETEKT_REPORT_DIR: Final[str] = "build/reports/detekt/"
KTLINT_REPORT_DIR: Final[str] = "build/reports/ktlint/"
KTLINT_CHECKSTYLE_REPORT: Final[str] = "ktlint-checkstyle-report.xml"

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_MANIFEST_FILE",
    "DETEKT_REPORT_DIR",
    "KOTLIN_COMPILE_STEP_NAME",
    "KTLINT_CHECKSTYLE_REPORT",
    "KTLINT_FORMAT_TASK_NAME",
    "KTLINT_REPORT_DIR",
    "MANIFEST_SCHEMA_VERSION",
    "PLAN_SCHEMA_VERSION",
    "TASK_NAMES",
    "TOOL_CHECKSTYLE",
    "TOOL_DETEKT",
    "TOOL_KOTLIN",
    "TOOL_KTLINT",
    "TOOL_LINT",
    "TOOL_PRIORITY",
    "VERIFICATION_GROUP",
    "VERIFY_STEP_NAME",
]
