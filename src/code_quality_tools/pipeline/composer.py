"""
Pipeline composer — execution units and verify-step wiring per module.

Composition is the second orchestration phase: it consumes finalized module
descriptors and the immutable policy set, asks the merge engine for every
(module, tool) pair in priority order, and emits:

- one ``ExecutionUnit`` per applicable tool, declared as a prerequisite of the
  module's aggregate ``check`` step;
- for the compiler-warning escalation tool, an in-place update of the module's
  ``compileKotlin`` step instead of a new unit.

Modules are independent; they may be composed on a thread pool. The shared
graph is only assembled after every module has been composed.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Iterable, Mapping, Set
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Final

from code_quality_tools.capabilities.probe import Capability, ModuleDescriptor
from code_quality_tools.constants import (
    DETEKT_REPORT_DIR,
    KOTLIN_COMPILE_STEP_NAME,
    KTLINT_CHECKSTYLE_REPORT,
    KTLINT_FORMAT_TASK_NAME,
    KTLINT_REPORT_DIR,
    PLAN_SCHEMA_VERSION,
    TASK_NAMES,
    TOOL_CHECKSTYLE,
    TOOL_DETEKT,
    TOOL_KOTLIN,
    TOOL_KTLINT,
    TOOL_LINT,
    TOOL_PRIORITY,
    VERIFICATION_GROUP,
    VERIFY_STEP_NAME,
)
from code_quality_tools.engine.merge import (
    Applicable,
    EffectiveSettings,
    MergeDecision,
    MergeEngine,
    RuntimeUnavailable,
    SkipDecision,
)
from code_quality_tools.errors import DescriptorError
from code_quality_tools.observability.logging import correlation_scope
from code_quality_tools.pipeline.graph import PipelineGraph, step_id
from code_quality_tools.policy.model import PolicySet

logger = logging.getLogger(__name__)

PayloadValue = str | bool | tuple[str, ...] | None

_KTLINT_MAIN_CLASS: Final[str] = "com.pinterest.ktlint.Main"
_ARTIFACTS: Final[dict[str, str]] = {
    TOOL_CHECKSTYLE: "com.puppycrawl.tools:checkstyle",
    TOOL_DETEKT: "io.gitlab.arturbosch.detekt:detekt-cli",
    TOOL_KTLINT: "com.pinterest.ktlint:ktlint-cli",
}
_DESCRIPTIONS: Final[dict[str, str]] = {
    TOOL_CHECKSTYLE: "Runs Java checkstyle.",
    TOOL_DETEKT: "Runs detekt.",
    TOOL_KTLINT: "Runs ktlint.",
    TOOL_LINT: "Runs Android lint.",
}


@dataclass(frozen=True, slots=True)
class PathResolver:
    """Resolves config references against the pipeline root and module directories."""

    root: PurePosixPath = PurePosixPath(".")

    @classmethod
    def for_root(cls, root: str | Path | PurePosixPath) -> PathResolver:
        return cls(root=PurePosixPath(Path(root).as_posix()))

    def resolve(self, ref: str | None) -> str | None:
        """Root-relative reference -> normalized path; ``None`` stays ``None``."""
        if ref is None:
            return None
        return _join_normalized(self.root, ref)

    def module_dir(self, module: ModuleDescriptor) -> str:
        return _join_normalized(self.root, module.directory)

    def resolve_in_module(self, module: ModuleDescriptor, ref: str | None) -> str | None:
        if ref is None:
            return None
        return _join_normalized(PurePosixPath(self.module_dir(module)), ref)


@dataclass(frozen=True, slots=True)
class ExecutionUnit:
    """One schedulable tool invocation against one module."""

    module_name: str
    tool: str
    task_name: str
    settings: EffectiveSettings
    config_path: str | None
    payload: tuple[tuple[str, PayloadValue], ...] = ()
    required_by: tuple[str, ...] = ()
    warnings: tuple[RuntimeUnavailable, ...] = ()
    description: str = ""
    group: str = VERIFICATION_GROUP

    @property
    def step_id(self) -> str:
        return step_id(self.module_name, self.task_name)

    @property
    def attaches_to_verify(self) -> bool:
        """Whether the module's ``check`` step waits on this unit."""
        return step_id(self.module_name, VERIFY_STEP_NAME) in self.required_by

    def value(self, key: str, default: PayloadValue = None) -> PayloadValue:
        for name, item in self.payload:
            if name == key:
                return item
        return default

    def to_dict(self) -> dict[str, object]:
        return {
            "step": self.step_id,
            "module": self.module_name,
            "tool": self.tool,
            "task": self.task_name,
            "group": self.group,
            "description": self.description,
            "settings": self.settings.to_dict(),
            "config_path": self.config_path,
            "payload": {
                key: list(value) if isinstance(value, tuple) else value
                for key, value in self.payload
            },
            "required_by": list(self.required_by),
            "attaches_to_verify": self.attaches_to_verify,
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


@dataclass(slots=True)
class CompileStep:
    """The host's language compile step; only its warning flag is ever touched."""

    module_name: str
    task_name: str = KOTLIN_COMPILE_STEP_NAME
    all_warnings_as_errors: bool = False

    @property
    def step_id(self) -> str:
        return step_id(self.module_name, self.task_name)

    def to_dict(self) -> dict[str, object]:
        return {
            "step": self.step_id,
            "task": self.task_name,
            "all_warnings_as_errors": self.all_warnings_as_errors,
        }


@dataclass(frozen=True, slots=True)
class ModulePipeline:
    module_name: str
    units: tuple[ExecutionUnit, ...] = ()
    compile_steps: tuple[CompileStep, ...] = ()
    decisions: tuple[MergeDecision, ...] = ()

    @property
    def verify_step(self) -> str:
        return step_id(self.module_name, VERIFY_STEP_NAME)

    @property
    def prerequisites(self) -> tuple[str, ...]:
        return tuple(unit.step_id for unit in self.units if unit.attaches_to_verify)

    @property
    def warnings(self) -> tuple[RuntimeUnavailable, ...]:
        return tuple(warning for unit in self.units for warning in unit.warnings)

    @property
    def skipped(self) -> tuple[SkipDecision, ...]:
        return tuple(item for item in self.decisions if isinstance(item, SkipDecision))

    def to_dict(self) -> dict[str, object]:
        return {
            "module": self.module_name,
            "verify_step": self.verify_step,
            "prerequisites": list(self.prerequisites),
            "units": [unit.to_dict() for unit in self.units],
            "compile_steps": [step.to_dict() for step in self.compile_steps],
            "skipped": {item.tool: item.reason.value for item in self.skipped},
        }


@dataclass(frozen=True, slots=True)
class PipelinePlan:
    modules: tuple[ModulePipeline, ...] = ()
    graph: PipelineGraph = field(default_factory=PipelineGraph, compare=False)

    @property
    def units(self) -> tuple[ExecutionUnit, ...]:
        """All units keyed by tool priority, then module name."""
        return tuple(
            sorted(
                (unit for module in self.modules for unit in module.units),
                key=lambda unit: (
                    TOOL_PRIORITY.index(unit.tool),
                    unit.module_name,
                    not unit.attaches_to_verify,
                    unit.task_name,
                ),
            )
        )

    @property
    def warnings(self) -> tuple[RuntimeUnavailable, ...]:
        return tuple(warning for module in self.modules for warning in module.warnings)

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        return self.graph.edges

    def module(self, name: str) -> ModulePipeline:
        for item in self.modules:
            if item.module_name == name:
                return item
        raise KeyError(f"Unknown module: {name}")

    def units_for(self, module_name: str) -> tuple[ExecutionUnit, ...]:
        return self.module(module_name).units

    def to_dict(self) -> dict[str, object]:
        return {
            "schema_version": PLAN_SCHEMA_VERSION,
            "modules": [module.to_dict() for module in self.modules],
            "graph": self.graph.serialize(),
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


_UnitBuilder = Callable[[ModuleDescriptor, Applicable, PathResolver], tuple[ExecutionUnit, ...]]


class PipelineComposer:
    """Turns merge decisions into execution units and verify-step edges."""

    __slots__ = ("_engine", "_resolver")

    def __init__(self, engine: MergeEngine, resolver: PathResolver | None = None) -> None:
        self._engine = engine
        self._resolver = resolver if resolver is not None else PathResolver()

    @property
    def engine(self) -> MergeEngine:
        return self._engine

    def compose_module(self, module: ModuleDescriptor) -> ModulePipeline:
        decisions = self._engine.resolve_module(module)

        # Skipped modules leave the host's compile step untouched.
        compile_steps: list[CompileStep] = []
        units: list[ExecutionUnit] = []
        with correlation_scope(module=module.name):
            for decision in decisions:
                if isinstance(decision, SkipDecision):
                    logger.debug(
                        "%s skipped for %s: %s",
                        decision.tool,
                        module.name,
                        decision.reason.value,
                    )
                    continue
                if decision.tool == TOOL_KOTLIN:
                    step = CompileStep(module_name=module.name)
                    _escalate_compiler_warnings(step, decision)
                    compile_steps.append(step)
                    continue
                for warning in decision.warnings:
                    logger.warning(warning.message)
                units.extend(_BUILDERS[decision.tool](module, decision, self._resolver))

        return ModulePipeline(
            module_name=module.name,
            units=tuple(units),
            compile_steps=tuple(compile_steps),
            decisions=decisions,
        )

    def compose(
        self,
        descriptors: Iterable[ModuleDescriptor],
        *,
        max_workers: int | None = None,
    ) -> PipelinePlan:
        modules = tuple(sorted(descriptors, key=lambda item: item.name))
        names = [module.name for module in modules]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise DescriptorError(f"duplicate module names: {duplicates}")

        if max_workers is not None and max_workers > 1 and len(modules) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                pipelines = tuple(pool.map(self.compose_module, modules))
        else:
            pipelines = tuple(self.compose_module(module) for module in modules)

        graph = PipelineGraph()
        for pipeline in pipelines:
            graph.add_step(pipeline.verify_step)
            for unit in pipeline.units:
                graph.add_step(unit.step_id)
                for dependent in unit.required_by:
                    graph.add_edge(unit.step_id, dependent)
        graph.topological_order()

        plan = PipelinePlan(modules=pipelines, graph=graph)
        logger.info(
            "pipeline composed",
            extra={
                "modules": len(pipelines),
                "units": len(plan.units),
                "runtime_warnings": len(plan.warnings),
            },
        )
        return plan


def compose_pipeline(
    descriptors: Iterable[ModuleDescriptor],
    policies: PolicySet,
    *,
    root: str | Path = ".",
    available_runtimes: Set[Capability] = frozenset(),
    max_workers: int | None = None,
) -> PipelinePlan:
    """Second orchestration phase: compose units and edges for finalized descriptors."""
    engine = MergeEngine(policies, available_runtimes=available_runtimes)
    composer = PipelineComposer(engine, PathResolver.for_root(root))
    return composer.compose(descriptors, max_workers=max_workers)


def _escalate_compiler_warnings(step: CompileStep, decision: Applicable) -> None:
    step.all_warnings_as_errors = decision.settings.fail_on


def _build_checkstyle(
    module: ModuleDescriptor, decision: Applicable, resolver: PathResolver
) -> tuple[ExecutionUnit, ...]:
    settings = decision.settings
    payload: dict[str, PayloadValue] = {
        "artifact": _artifact(TOOL_CHECKSTYLE, settings),
        "source_dir": resolver.resolve_in_module(module, _str_option(settings, "source")),
        "include": _globs(settings, "include"),
        "exclude": _globs(settings, "exclude"),
        "ignore_failures": not settings.fail_on,
        "show_violations": settings.verbose,
    }
    return (_unit(module, decision, resolver, payload),)


def _build_detekt(
    module: ModuleDescriptor, decision: Applicable, resolver: PathResolver
) -> tuple[ExecutionUnit, ...]:
    settings = decision.settings
    payload: dict[str, PayloadValue] = {
        "artifact": _artifact(TOOL_DETEKT, settings),
        "input_dir": resolver.resolve_in_module(module, _str_option(settings, "input")),
        "baseline_path": resolver.resolve_in_module(
            module, _optional_str_option(settings, "baseline_file")
        ),
        "output_dir": resolver.resolve_in_module(module, DETEKT_REPORT_DIR),
        "fail_fast": settings.fail_on,
        "build_upon_default_config": bool(settings.option("build_upon_default_config", False)),
        "parallel": bool(settings.option("parallel", False)),
    }
    return (_unit(module, decision, resolver, payload),)


def _build_ktlint(
    module: ModuleDescriptor, decision: Applicable, resolver: PathResolver
) -> tuple[ExecutionUnit, ...]:
    settings = decision.settings
    output_dir = resolver.resolve_in_module(module, KTLINT_REPORT_DIR) or KTLINT_REPORT_DIR
    include = _globs(settings, "include")
    exclude = _globs(settings, "exclude")
    base: dict[str, PayloadValue] = {
        "artifact": _artifact(TOOL_KTLINT, settings),
        "main_class": _KTLINT_MAIN_CLASS,
        "include": include,
        "exclude": exclude,
        "editorconfig": resolver.resolve(_str_option(settings, "editorconfig")),
        "output_dir": output_dir,
    }
    check_unit = _unit(
        module,
        decision,
        resolver,
        {**base, "command": ktlint_command(output_dir, include, exclude)},
    )
    format_unit = _unit(
        module,
        decision,
        resolver,
        {**base, "command": ktlint_command(output_dir, include, exclude, format_sources=True)},
        task_name=KTLINT_FORMAT_TASK_NAME,
        attaches_to_verify=False,
        description="Formats Kotlin sources with ktlint.",
    )
    return (check_unit, format_unit)


def _build_lint(
    module: ModuleDescriptor, decision: Applicable, resolver: PathResolver
) -> tuple[ExecutionUnit, ...]:
    settings = decision.settings
    warnings_as_errors = settings.option("warnings_as_errors")
    payload: dict[str, PayloadValue] = {
        "abort_on_error": settings.fail_on,
        "warnings_as_errors": (
            settings.fail_on if warnings_as_errors is None else bool(warnings_as_errors)
        ),
    }
    for knob in (
        "check_all_warnings",
        "absolute_paths",
        "check_release_builds",
        "check_test_sources",
        "check_dependencies",
    ):
        value = settings.option(knob)
        if value is not None:
            payload[knob] = bool(value)

    baseline = _optional_str_option(settings, "baseline_file")
    if baseline is not None:
        payload["baseline_path"] = resolver.resolve_in_module(module, baseline)

    text_report = settings.option("text_report")
    if text_report is not None:
        payload["text_report"] = bool(text_report)
        payload["text_output"] = _str_option(settings, "text_output")

    return (_unit(module, decision, resolver, payload),)


_BUILDERS: Final[Mapping[str, _UnitBuilder]] = {
    TOOL_CHECKSTYLE: _build_checkstyle,
    TOOL_DETEKT: _build_detekt,
    TOOL_KTLINT: _build_ktlint,
    TOOL_LINT: _build_lint,
}


def ktlint_command(
    output_dir: str,
    include: Iterable[str],
    exclude: Iterable[str],
    *,
    format_sources: bool = False,
) -> tuple[str, ...]:
    """Arguments the format-checker runner passes to the ktlint CLI."""
    report = posixpath.join(output_dir, KTLINT_CHECKSTYLE_REPORT)
    args: list[str] = ["-F"] if format_sources else []
    args.extend(("--reporter=plain", f"--reporter=checkstyle,output={report}"))
    args.extend(include)
    args.extend(f"!{pattern}" for pattern in exclude)
    return tuple(args)


def _unit(
    module: ModuleDescriptor,
    decision: Applicable,
    resolver: PathResolver,
    payload: Mapping[str, PayloadValue],
    *,
    task_name: str | None = None,
    attaches_to_verify: bool = True,
    description: str | None = None,
) -> ExecutionUnit:
    return ExecutionUnit(
        module_name=module.name,
        tool=decision.tool,
        task_name=task_name if task_name is not None else TASK_NAMES[decision.tool],
        settings=decision.settings,
        config_path=resolver.resolve(decision.settings.config_file),
        payload=tuple(sorted(payload.items())),
        required_by=(step_id(module.name, VERIFY_STEP_NAME),) if attaches_to_verify else (),
        warnings=decision.warnings,
        description=description if description is not None else _DESCRIPTIONS[decision.tool],
    )


def _artifact(tool: str, settings: EffectiveSettings) -> str:
    return f"{_ARTIFACTS[tool]}:{settings.tool_version}"


def _globs(settings: EffectiveSettings, name: str) -> tuple[str, ...]:
    value = settings.option(name, ())
    return tuple(value) if isinstance(value, tuple) else ()


def _str_option(settings: EffectiveSettings, name: str) -> str:
    value = settings.option(name, "")
    return value if isinstance(value, str) else ""


def _optional_str_option(settings: EffectiveSettings, name: str) -> str | None:
    value = settings.option(name)
    return value if isinstance(value, str) else None


def _join_normalized(base: PurePosixPath, ref: str) -> str:
    candidate = PurePosixPath(ref)
    joined = candidate if candidate.is_absolute() else base / candidate
    normalized = posixpath.normpath(joined.as_posix())
    if ref.endswith("/") and not normalized.endswith("/"):
        normalized += "/"
    return normalized


__all__ = [
    "CompileStep",
    "ExecutionUnit",
    "ModulePipeline",
    "PathResolver",
    "PipelineComposer",
    "PipelinePlan",
    "compose_pipeline",
    "ktlint_command",
]
