"""Exception taxonomy shared by the config, policy and manifest layers."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when policy input is malformed; aborts orchestration before any module runs."""


class DescriptorError(ConfigurationError):
    """Raised when module descriptors cannot be collected or are inconsistent."""


__all__ = ["ConfigurationError", "DescriptorError"]
