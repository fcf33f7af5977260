"""
code-quality-tools config package public API.

File: src/code_quality_tools/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``code-quality.toml`` + ``CODE_QUALITY_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from code_quality_tools.config.loader import (
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    load_config_file,
    parse_override,
)
from code_quality_tools.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    CodeQualityConfig,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ProfileOverlay,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    normalize_keys,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "CodeQualityConfig",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "ENV_PREFIX",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_config_file",
    "merge_config",
    "migration_guidance",
    "normalize_keys",
    "parse_override",
    "validate_config",
]
