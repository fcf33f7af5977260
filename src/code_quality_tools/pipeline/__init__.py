"""Pipeline composition: execution units, compile-step updates and the step graph."""

from code_quality_tools.pipeline.composer import (
    CompileStep,
    ExecutionUnit,
    ModulePipeline,
    PathResolver,
    PipelineComposer,
    PipelinePlan,
    compose_pipeline,
    ktlint_command,
)
from code_quality_tools.pipeline.graph import CycleError, PipelineGraph, step_id

__all__ = [
    "CompileStep",
    "CycleError",
    "ExecutionUnit",
    "ModulePipeline",
    "PathResolver",
    "PipelineComposer",
    "PipelineGraph",
    "PipelinePlan",
    "compose_pipeline",
    "ktlint_command",
    "step_id",
]
