"""Policy model: global defaults and per-tool settings snapshots."""

from code_quality_tools.policy.model import (
    SETTINGS_TYPES,
    CheckstyleSettings,
    DetektSettings,
    GlobalPolicy,
    KotlinSettings,
    KtlintSettings,
    LintSettings,
    PolicySet,
    ToolSettings,
    build_policy,
)

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
