"""
code-quality-tools: static-analysis wiring for multi-module builds.

File: src/code_quality_tools/__init__.py

Purpose
- Package root. Exposes the two orchestration phases and the version.

Orchestration
- Phase one: ``collect_descriptors()`` finalizes every module's capabilities.
- Phase two: ``compose_pipeline()`` resolves each (module, tool) pair against
  the policy set and wires execution units into each module's verify step.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from code_quality_tools.capabilities import Capability, ModuleDescriptor, collect_descriptors
from code_quality_tools.errors import ConfigurationError, DescriptorError
from code_quality_tools.pipeline import PipelinePlan, compose_pipeline
from code_quality_tools.policy import PolicySet, build_policy

__version__ = "0.1.0"

__all__ = [
    "Capability",
    "ConfigurationError",
    "DescriptorError",
    "ModuleDescriptor",
    "PipelinePlan",
    "PolicySet",
    "__version__",
    "build_policy",
    "collect_descriptors",
    "compose_pipeline",
]
