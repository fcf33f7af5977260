"""Merge engine: tool applicability and effective settings per module."""

from code_quality_tools.engine.merge import (
    TOOL_SPECS,
    Applicable,
    EffectiveSettings,
    MergeDecision,
    MergeEngine,
    RuntimeUnavailable,
    SkipDecision,
    SkipReason,
    ToolSpec,
    resolve_settings,
    resolve_tool,
)

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
