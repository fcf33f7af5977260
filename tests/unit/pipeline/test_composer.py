"""
code-quality-tools — unit tests for the pipeline composer

File: tests/unit/pipeline/test_composer.py

Purpose
- Validate execution units, verify-step wiring and compile-step escalation per module.

What this test file should cover
- Exactly one unit per applicable tool, attached to ``<module>:check``.
- Zero-unit modules keep a dependency-free verify step.
- Compiler-warning escalation mutates the compile step instead of creating a unit.
- Idempotence and parallel/sequential equivalence.
- Tool payloads: resolved paths, ktlint arguments, lint knobs.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath

import pytest

from code_quality_tools.capabilities.probe import Capability, ModuleDescriptor
from code_quality_tools.engine.merge import MergeEngine
from code_quality_tools.errors import DescriptorError
from code_quality_tools.pipeline.composer import (
    CompileStep,
    PathResolver,
    PipelineComposer,
    compose_pipeline,
    ktlint_command,
)
from code_quality_tools.policy.model import (
    DetektSettings,
    GlobalPolicy,
    KotlinSettings,
    KtlintSettings,
    LintSettings,
    PolicySet,
)

ROOT = "/repo"


def _modules() -> tuple[ModuleDescriptor, ...]:
    return (
        ModuleDescriptor(
            "app", frozenset({Capability.ANDROID, Capability.KOTLIN}), path="android/app"
        ),
        ModuleDescriptor("core", frozenset({Capability.JAVA})),
        ModuleDescriptor("lib", frozenset({Capability.KOTLIN})),
        ModuleDescriptor("docs"),
    )


def test_units_attach_to_each_module_verify_step() -> None:
    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    assert [module.module_name for module in plan.modules] == ["app", "core", "docs", "lib"]
    assert plan.module("app").prerequisites == (
        "app:checkstyle",
        "app:detektCheck",
        "app:ktlint",
        "app:lint",
    )
    assert plan.module("core").prerequisites == ("core:checkstyle", "core:lint")
    assert plan.module("lib").prerequisites == ("lib:detektCheck", "lib:ktlint")
    assert plan.graph.prerequisites("app:check") == (
        "app:checkstyle",
        "app:detektCheck",
        "app:ktlint",
        "app:lint",
    )


def test_module_without_applicable_tools_keeps_empty_verify_step() -> None:
    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    docs = plan.module("docs")
    assert docs.units == ()
    assert docs.prerequisites == ()
    assert docs.verify_step == "docs:check"
    assert "docs:check" in plan.graph
    assert plan.graph.prerequisites("docs:check") == ()


def test_ignored_module_gets_zero_units() -> None:
    policies = PolicySet(policy=GlobalPolicy(ignored_modules=frozenset({"legacy"})))
    legacy = ModuleDescriptor("legacy", frozenset(Capability))

    plan = compose_pipeline((legacy,), policies, root=ROOT)

    assert plan.units_for("legacy") == ()
    assert plan.module("legacy").compile_steps == ()
    assert plan.graph.steps == ("legacy:check",)


def test_units_are_ordered_by_tool_priority_then_module() -> None:
    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    assert [unit.step_id for unit in plan.units] == [
        "app:checkstyle",
        "core:checkstyle",
        "app:detektCheck",
        "lib:detektCheck",
        "app:ktlint",
        "app:ktlintFormat",
        "lib:ktlint",
        "lib:ktlintFormat",
        "app:lint",
        "core:lint",
    ]
    assert all(unit.tool != "kotlin" for unit in plan.units)


def test_graph_is_acyclic_and_format_unit_is_detached() -> None:
    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    order = plan.graph.topological_order()
    assert order.index("app:ktlint") < order.index("app:check")
    assert plan.graph.dependents("app:ktlintFormat") == ()
    assert ("app:ktlintFormat", "app:check") not in plan.edges


def test_kotlin_tool_escalates_compile_step_warnings() -> None:
    strict = compose_pipeline(_modules(), PolicySet(), root=ROOT)
    assert strict.module("lib").compile_steps == (
        CompileStep("lib", "compileKotlin", all_warnings_as_errors=True),
    )
    assert strict.module("core").compile_steps == ()

    overridden = compose_pipeline(
        _modules(), PolicySet(kotlin=KotlinSettings(failure_override=False)), root=ROOT
    )
    assert overridden.module("lib").compile_steps[0].all_warnings_as_errors is False

    lenient = compose_pipeline(
        _modules(), PolicySet(policy=GlobalPolicy(fail_early=False)), root=ROOT
    )
    assert lenient.module("app").compile_steps[0].all_warnings_as_errors is False

    disabled = compose_pipeline(
        _modules(), PolicySet(kotlin=KotlinSettings(enabled=False)), root=ROOT
    )
    assert disabled.module("lib").compile_steps == ()


def test_ignored_module_compile_step_differs_from_lenient_policy() -> None:
    legacy = (ModuleDescriptor("legacy", frozenset({Capability.KOTLIN})),)

    ignored = compose_pipeline(
        legacy, PolicySet(policy=GlobalPolicy(ignored_modules=frozenset({"legacy"}))), root=ROOT
    )
    lenient = compose_pipeline(legacy, PolicySet(policy=GlobalPolicy(fail_early=False)), root=ROOT)

    assert ignored.to_dict()["modules"] != lenient.to_dict()["modules"]
    assert ignored.module("legacy").compile_steps == ()
    assert lenient.module("legacy").compile_steps == (
        CompileStep("legacy", all_warnings_as_errors=False),
    )


def test_required_by_drives_verify_edges() -> None:
    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    for unit in plan.units:
        expected = () if unit.task_name == "ktlintFormat" else (f"{unit.module_name}:check",)
        assert unit.required_by == expected
        assert unit.to_dict()["required_by"] == list(expected)
        for dependent in unit.required_by:
            assert (unit.step_id, dependent) in plan.edges


def test_composition_is_idempotent() -> None:
    first = compose_pipeline(_modules(), PolicySet(), root=ROOT)
    second = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    assert first.units == second.units
    assert first.edges == second.edges
    assert first.to_dict() == second.to_dict()


def test_parallel_composition_matches_sequential() -> None:
    modules = _modules() + tuple(
        ModuleDescriptor(f"feature-{index:02d}", frozenset({Capability.KOTLIN}))
        for index in range(12)
    )

    sequential = compose_pipeline(modules, PolicySet(), root=ROOT)
    parallel = compose_pipeline(modules, PolicySet(), root=ROOT, max_workers=4)

    assert parallel.to_dict() == sequential.to_dict()


def test_input_order_does_not_change_plan() -> None:
    forward = compose_pipeline(_modules(), PolicySet(), root=ROOT)
    backward = compose_pipeline(tuple(reversed(_modules())), PolicySet(), root=ROOT)

    assert forward.to_dict() == backward.to_dict()


def test_duplicate_module_names_are_rejected() -> None:
    composer = PipelineComposer(MergeEngine(PolicySet()))

    with pytest.raises(DescriptorError, match="duplicate"):
        composer.compose([ModuleDescriptor("app"), ModuleDescriptor("app")])


def test_runtime_warning_is_attached_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    lint = plan.units_for("core")[-1]
    assert lint.tool == "lint"
    assert [warning.runtime for warning in lint.warnings] == [Capability.LINT_RUNTIME]
    assert [warning.module_name for warning in plan.warnings] == ["core"]
    assert any(
        record.levelno == logging.WARNING and "lint_runtime" in record.getMessage()
        for record in caplog.records
    )
    assert any(record.getMessage() == "pipeline composed" for record in caplog.records)

    declared = compose_pipeline(
        _modules(), PolicySet(), root=ROOT, available_runtimes=frozenset({Capability.LINT_RUNTIME})
    )
    assert declared.warnings == ()


def test_checkstyle_unit_payload() -> None:
    plan = compose_pipeline(_modules(), PolicySet(), root=ROOT)

    unit = plan.units_for("core")[0]
    assert unit.task_name == "checkstyle"
    assert unit.config_path == "/repo/config/checkstyle/checkstyle.xml"
    assert unit.value("artifact") == "com.puppycrawl.tools:checkstyle:10.12.4"
    assert unit.value("source_dir") == "/repo/core/src"
    assert unit.value("include") == ("**/*.java",)
    assert unit.value("ignore_failures") is False
    assert unit.value("show_violations") is True
    assert unit.settings.xml_reports is True
    assert unit.settings.html_reports is False


def test_detekt_unit_payload_resolves_module_paths() -> None:
    policies = PolicySet(
        detekt=DetektSettings(baseline_file="detekt-baseline.xml", parallel=True),
        policy=GlobalPolicy(fail_early=False),
    )

    plan = compose_pipeline(_modules(), policies, root=ROOT)

    unit = plan.units_for("app")[1]
    assert unit.task_name == "detektCheck"
    assert unit.config_path == "/repo/config/detekt/detekt.yml"
    assert unit.value("input_dir") == "/repo/android/app/src"
    assert unit.value("baseline_path") == "/repo/android/app/detekt-baseline.xml"
    assert unit.value("output_dir") == "/repo/android/app/build/reports/detekt/"
    assert unit.value("fail_fast") is False
    assert unit.value("parallel") is True


def test_ktlint_units_share_settings_and_differ_in_format_flag() -> None:
    plan = compose_pipeline(
        _modules(), PolicySet(ktlint=KtlintSettings(exclude=("build/",))), root=ROOT
    )

    check_unit, format_unit = plan.units_for("lib")[1:3]
    report = "/repo/lib/build/reports/ktlint/ktlint-checkstyle-report.xml"
    assert check_unit.value("command") == (
        "--reporter=plain",
        f"--reporter=checkstyle,output={report}",
        "**/*.kt",
        "**/*.kts",
        "!build/",
    )
    assert format_unit.task_name == "ktlintFormat"
    assert format_unit.attaches_to_verify is False
    assert format_unit.value("command") == ("-F", *check_unit.value("command"))  # type: ignore[misc]
    assert check_unit.value("editorconfig") == "/repo/.editorconfig"
    assert check_unit.config_path is None


def test_lint_unit_forwards_only_configured_knobs() -> None:
    default_unit = compose_pipeline(_modules(), PolicySet(), root=ROOT).units_for("core")[-1]
    assert dict(default_unit.payload) == {"abort_on_error": True, "warnings_as_errors": True}

    configured = PolicySet(
        policy=GlobalPolicy(fail_early=False),
        lint=LintSettings(
            config_file="config/lint/lint.xml",
            warnings_as_errors=True,
            check_test_sources=True,
            baseline_file="lint-baseline.xml",
            text_report=True,
            text_output="build/lint.txt",
        ),
    )
    unit = compose_pipeline(_modules(), configured, root=ROOT).units_for("core")[-1]

    assert unit.config_path == "/repo/config/lint/lint.xml"
    assert dict(unit.payload) == {
        "abort_on_error": False,
        "warnings_as_errors": True,
        "check_test_sources": True,
        "baseline_path": "/repo/core/lint-baseline.xml",
        "text_report": True,
        "text_output": "build/lint.txt",
    }


def test_plan_serialization_contains_schema_and_graph() -> None:
    payload = compose_pipeline(_modules(), PolicySet(), root=ROOT).to_dict()

    assert payload["schema_version"] == 1
    graph = payload["graph"]
    assert isinstance(graph, dict)
    assert ["docs:check"] == [step for step in graph["steps"] if step.startswith("docs:")]
    modules = payload["modules"]
    assert isinstance(modules, list)
    app = modules[0]
    assert app["module"] == "app"
    assert app["compile_steps"] == [
        {"step": "app:compileKotlin", "task": "compileKotlin", "all_warnings_as_errors": True}
    ]
    assert app["skipped"] == {}
    assert modules[1]["skipped"] == {
        "detekt": "unsupported_module",
        "kotlin": "unsupported_module",
        "ktlint": "unsupported_module",
    }


def test_path_resolver_keeps_absolute_and_normalizes_relative() -> None:
    resolver = PathResolver.for_root("/repo")
    module = ModuleDescriptor("app", path="android/app")

    assert resolver.root == PurePosixPath("/repo")
    assert resolver.resolve(None) is None
    assert resolver.resolve("config/../config/lint.xml") == "/repo/config/lint.xml"
    assert resolver.resolve("/etc/lint.xml") == "/etc/lint.xml"
    assert resolver.module_dir(module) == "/repo/android/app"
    assert resolver.resolve_in_module(module, "build/reports/") == "/repo/android/app/build/reports/"
    assert PathResolver().resolve("config/a.xml") == "config/a.xml"


def test_ktlint_command_without_excludes() -> None:
    assert ktlint_command("out", ("**/*.kt",), ()) == (
        "--reporter=plain",
        "--reporter=checkstyle,output=out/ktlint-checkstyle-report.xml",
        "**/*.kt",
    )
