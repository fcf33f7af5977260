"""
code-quality-tools — unit tests for the merge engine

File: tests/unit/engine/test_merge.py

Purpose
- Validate per (module, tool) applicability and effective settings resolution.

What this test file should cover
- Ignore precedence, enabled gating, capability gating.
- Override precedence for failure and verbosity.
- Runtime advisories for tools that need an external runtime.
- Determinism of decisions across repeated evaluation.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from code_quality_tools.capabilities.probe import Capability, ModuleDescriptor
from code_quality_tools.constants import TOOL_PRIORITY
from code_quality_tools.engine.merge import (
    TOOL_SPECS,
    Applicable,
    MergeEngine,
    RuntimeUnavailable,
    SkipDecision,
    SkipReason,
    resolve_settings,
    resolve_tool,
)
from code_quality_tools.policy.model import (
    SETTINGS_TYPES,
    CheckstyleSettings,
    DetektSettings,
    GlobalPolicy,
    LintSettings,
    PolicySet,
)

_ALL_CAPABILITIES = frozenset(Capability)
_capability_sets = st.frozensets(st.sampled_from(sorted(Capability)))
_optional_bools = st.one_of(st.none(), st.booleans())


def _module(name: str, *capabilities: Capability) -> ModuleDescriptor:
    return ModuleDescriptor(name=name, capabilities=frozenset(capabilities))


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def test_scenario_java_module_gets_checkstyle_with_fail_early_defaults() -> None:
    decision = resolve_tool(
        _module("app", Capability.JAVA),
        CheckstyleSettings(enabled=True),
        GlobalPolicy(fail_early=True, ignored_modules=frozenset()),
    )

    assert isinstance(decision, Applicable)
    assert decision.settings.fail_on is True
    assert decision.settings.verbose is True
    assert decision.warnings == ()


def test_scenario_kotlin_only_module_skips_checkstyle() -> None:
    decision = resolve_tool(
        _module("app", Capability.KOTLIN),
        CheckstyleSettings(enabled=True),
        GlobalPolicy(fail_early=True),
    )

    assert decision == SkipDecision("app", "checkstyle", SkipReason.UNSUPPORTED_MODULE)
    assert decision.applicable is False


def test_scenario_failure_override_wins_over_global_policy() -> None:
    decision = resolve_tool(
        _module("core", Capability.KOTLIN),
        DetektSettings(enabled=True, failure_override=True),
        GlobalPolicy(fail_early=False),
    )

    assert isinstance(decision, Applicable)
    assert decision.settings.fail_on is True
    assert decision.settings.verbose is False


def test_scenario_ignored_module_resolves_every_tool_to_skip() -> None:
    policies = PolicySet(policy=GlobalPolicy(ignored_modules=frozenset({"legacy"})))
    engine = MergeEngine(policies, available_runtimes=frozenset(Capability))

    decisions = engine.resolve_module(_module("legacy", *Capability))

    assert [decision.tool for decision in decisions] == list(TOOL_PRIORITY)
    assert all(isinstance(decision, SkipDecision) for decision in decisions)
    assert {decision.reason for decision in decisions} == {SkipReason.IGNORED_MODULE}


# ---------------------------------------------------------------------------
# Gating order
# ---------------------------------------------------------------------------


def test_disabled_tool_is_skipped_before_capability_gating() -> None:
    decision = resolve_tool(
        _module("core", Capability.KOTLIN),
        CheckstyleSettings(enabled=False),
        GlobalPolicy(),
    )

    assert isinstance(decision, SkipDecision)
    assert decision.reason is SkipReason.DISABLED


@pytest.mark.parametrize(
    ("tool", "capability", "applicable"),
    [
        ("checkstyle", Capability.JAVA, True),
        ("checkstyle", Capability.ANDROID, True),
        ("checkstyle", Capability.KOTLIN, False),
        ("detekt", Capability.KOTLIN, True),
        ("detekt", Capability.ANDROID, True),
        ("detekt", Capability.JAVA, False),
        ("ktlint", Capability.KOTLIN, True),
        ("ktlint", Capability.ANDROID, False),
        ("kotlin", Capability.KOTLIN, True),
        ("kotlin", Capability.JAVA, False),
        ("lint", Capability.ANDROID, True),
        ("lint", Capability.JAVA, True),
        ("lint", Capability.KOTLIN, False),
    ],
)
def test_capability_gating_table(tool: str, capability: Capability, applicable: bool) -> None:
    engine = MergeEngine(PolicySet())

    decision = engine.resolve(_module("mod", capability), tool)

    assert decision.applicable is applicable


def test_report_formats_always_come_from_global_policy() -> None:
    effective = resolve_settings(
        DetektSettings(report_verbosity_override=True),
        GlobalPolicy(fail_early=False, xml_reports=False, html_reports=True),
    )

    assert effective.xml_reports is False
    assert effective.html_reports is True
    assert effective.verbose is True
    assert effective.fail_on is False


def test_effective_settings_carry_tool_payload() -> None:
    effective = resolve_settings(
        LintSettings(config_file="config/lint/lint.xml", check_test_sources=True),
        GlobalPolicy(),
    )

    assert effective.config_file == "config/lint/lint.xml"
    assert effective.option("check_test_sources") is True
    assert effective.option("absolute_paths") is None
    assert effective.option("missing", "fallback") == "fallback"
    assert [key for key, _ in effective.options] == sorted(key for key, _ in effective.options)
    assert effective.to_dict()["options"]["text_output"] == "stdout"


# ---------------------------------------------------------------------------
# Runtime advisories
# ---------------------------------------------------------------------------


def test_detekt_on_android_module_without_runtime_emits_warning() -> None:
    decision = resolve_tool(_module("app", Capability.ANDROID), DetektSettings(), GlobalPolicy())

    assert isinstance(decision, Applicable)
    assert decision.warnings == (
        RuntimeUnavailable("app", "detekt", Capability.ANALYZER_RUNTIME),
    )
    assert "analyzer_runtime" in decision.warnings[0].message


def test_detekt_on_kotlin_module_needs_no_runtime() -> None:
    decision = resolve_tool(
        _module("app", Capability.ANDROID, Capability.KOTLIN), DetektSettings(), GlobalPolicy()
    )

    assert isinstance(decision, Applicable)
    assert decision.warnings == ()


def test_runtime_supplied_by_caller_or_module_clears_warning() -> None:
    supplied = resolve_tool(
        _module("core", Capability.JAVA),
        LintSettings(),
        GlobalPolicy(),
        available_runtimes=frozenset({Capability.LINT_RUNTIME}),
    )
    declared = resolve_tool(
        _module("core", Capability.JAVA, Capability.LINT_RUNTIME), LintSettings(), GlobalPolicy()
    )
    missing = resolve_tool(_module("core", Capability.JAVA), LintSettings(), GlobalPolicy())

    assert isinstance(supplied, Applicable) and supplied.warnings == ()
    assert isinstance(declared, Applicable) and declared.warnings == ()
    assert isinstance(missing, Applicable)
    assert missing.warnings[0].to_dict()["runtime"] == "lint_runtime"


def test_tool_specs_cover_every_tool() -> None:
    assert set(TOOL_SPECS) == set(TOOL_PRIORITY) == set(SETTINGS_TYPES)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@settings(max_examples=60, derandomize=True, deadline=None)
@given(
    capabilities=_capability_sets,
    enabled=st.booleans(),
    fail_early=st.booleans(),
    tool=st.sampled_from(TOOL_PRIORITY),
)
def test_property_ignored_module_always_skips(
    capabilities: frozenset[Capability], enabled: bool, fail_early: bool, tool: str
) -> None:
    settings_type = SETTINGS_TYPES[tool]
    decision = resolve_tool(
        ModuleDescriptor("legacy", capabilities),
        settings_type(enabled=enabled),
        GlobalPolicy(fail_early=fail_early, ignored_modules=frozenset({"legacy"})),
    )

    assert decision == SkipDecision("legacy", tool, SkipReason.IGNORED_MODULE)


@settings(max_examples=60, derandomize=True, deadline=None)
@given(
    failure_override=_optional_bools,
    verbosity_override=_optional_bools,
    fail_early=st.booleans(),
    tool=st.sampled_from(TOOL_PRIORITY),
)
def test_property_override_precedence(
    failure_override: bool | None,
    verbosity_override: bool | None,
    fail_early: bool,
    tool: str,
) -> None:
    decision = resolve_tool(
        ModuleDescriptor("mod", _ALL_CAPABILITIES),
        SETTINGS_TYPES[tool](
            failure_override=failure_override,
            report_verbosity_override=verbosity_override,
        ),
        GlobalPolicy(fail_early=fail_early),
    )

    assert isinstance(decision, Applicable)
    expected_fail = fail_early if failure_override is None else failure_override
    expected_verbose = fail_early if verbosity_override is None else verbosity_override
    assert decision.settings.fail_on is expected_fail
    assert decision.settings.verbose is expected_verbose


@settings(max_examples=60, derandomize=True, deadline=None)
@given(capabilities=_capability_sets)
def test_property_checkstyle_requires_java_or_android(capabilities: frozenset[Capability]) -> None:
    decision = resolve_tool(
        ModuleDescriptor("mod", capabilities), CheckstyleSettings(), GlobalPolicy()
    )

    supported = bool(capabilities & {Capability.JAVA, Capability.ANDROID})
    assert decision.applicable is supported


@settings(max_examples=40, derandomize=True, deadline=None)
@given(capabilities=_capability_sets, runtimes=_capability_sets)
def test_property_decisions_are_deterministic(
    capabilities: frozenset[Capability], runtimes: frozenset[Capability]
) -> None:
    module = ModuleDescriptor("mod", capabilities)
    engine = MergeEngine(PolicySet(), available_runtimes=runtimes)

    assert engine.resolve_module(module) == engine.resolve_module(module)
    assert engine.resolve_module(module) == MergeEngine(
        PolicySet(), available_runtimes=runtimes
    ).resolve_module(module)
