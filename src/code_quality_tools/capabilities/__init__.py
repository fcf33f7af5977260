"""Capability probe: module descriptors, capability predicates, runtime detection."""

from code_quality_tools.capabilities.manifest import (
    collect_descriptors,
    load_manifest,
    parse_manifest,
)
from code_quality_tools.capabilities.probe import (
    PLUGIN_CAPABILITIES,
    RUNTIME_CAPABILITIES,
    Capability,
    ModuleDescriptor,
    capabilities_from_plugins,
    has_any_capability,
    has_capability,
    is_android_module,
    is_java_module,
    is_kotlin_module,
    runtime_available,
    supports_checkstyle,
)
from code_quality_tools.capabilities.runtimes import (
    RuntimeInfo,
    detect_runtime,
    detect_runtime_infos,
    detect_runtimes,
)

__all__ = [
    "Capability",
    "ModuleDescriptor",
    "PLUGIN_CAPABILITIES",
    "RUNTIME_CAPABILITIES",
    "RuntimeInfo",
    "capabilities_from_plugins",
    "collect_descriptors",
    "detect_runtime",
    "detect_runtime_infos",
    "detect_runtimes",
    "has_any_capability",
    "has_capability",
    "is_android_module",
    "is_java_module",
    "is_kotlin_module",
    "load_manifest",
    "parse_manifest",
    "runtime_available",
    "supports_checkstyle",
]
