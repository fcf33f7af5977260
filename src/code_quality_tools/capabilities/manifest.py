"""Module manifest loading: the first phase of orchestration.

A manifest lists the modules of a build with either explicit capabilities or the
build-system plugin ids applied to them::

    modules:
      - name: app
        path: app
        plugins: [com.android.application, kotlin-android]
      - name: core
        capabilities: [java]

Descriptors returned from here are final; composition must only start after this
phase has completed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import cast

import yaml

from code_quality_tools.capabilities.probe import (
    Capability,
    ModuleDescriptor,
    capabilities_from_plugins,
)
from code_quality_tools.constants import MANIFEST_SCHEMA_VERSION
from code_quality_tools.errors import DescriptorError

_RECORD_KEYS = frozenset({"name", "path", "capabilities", "plugins"})


def collect_descriptors(
    source: str | Path | Iterable[ModuleDescriptor] | Mapping[str, object],
) -> tuple[ModuleDescriptor, ...]:
    """Collect and finalize module descriptors sorted by module name.

    ``source`` may be a manifest path, an already-parsed manifest mapping, or an
    iterable of descriptors. Duplicate module names raise ``DescriptorError``.
    """
    if isinstance(source, (str, Path)):
        descriptors = load_manifest(source)
    elif isinstance(source, Mapping):
        descriptors = parse_manifest(source, origin="<mapping>")
    else:
        descriptors = tuple(source)
        for index, item in enumerate(descriptors):
            if not isinstance(item, ModuleDescriptor):
                raise DescriptorError(f"modules[{index}]: expected ModuleDescriptor")

    seen: set[str] = set()
    for descriptor in descriptors:
        if descriptor.name in seen:
            raise DescriptorError(f"duplicate module name: {descriptor.name!r}")
        seen.add(descriptor.name)
    return tuple(sorted(descriptors, key=lambda item: item.name))


def load_manifest(path: str | Path) -> tuple[ModuleDescriptor, ...]:
    """Load descriptors from a YAML manifest file."""
    manifest_path = Path(path)
    try:
        with manifest_path.open("r", encoding="utf-8") as handle:
            loaded = cast("object", yaml.safe_load(handle))
    except OSError as exc:
        raise DescriptorError(f"unable to read module manifest {manifest_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise DescriptorError(f"invalid YAML in {manifest_path}: {exc}") from exc

    if loaded is None:
        return ()
    if not isinstance(loaded, Mapping):
        raise DescriptorError(f"{manifest_path}: manifest root must be a mapping")
    return parse_manifest(loaded, origin=manifest_path.as_posix())


def parse_manifest(payload: Mapping[str, object], *, origin: str) -> tuple[ModuleDescriptor, ...]:
    version = payload.get("schema_version", MANIFEST_SCHEMA_VERSION)
    if version != MANIFEST_SCHEMA_VERSION:
        raise DescriptorError(
            f"{origin}: unsupported manifest schema_version {version!r}; "
            f"expected {MANIFEST_SCHEMA_VERSION}"
        )
    unknown = sorted(str(key) for key in payload if key not in {"schema_version", "modules"})
    if unknown:
        raise DescriptorError(f"{origin}: unknown manifest fields: {unknown}")

    records = payload.get("modules", [])
    if records is None:
        return ()
    if not _is_sequence(records):
        raise DescriptorError(f"{origin}: 'modules' must be a list")

    return tuple(
        _parse_record(record, f"{origin}: modules[{index}]")
        for index, record in enumerate(cast("Sequence[object]", records))
    )


def _parse_record(record: object, path: str) -> ModuleDescriptor:
    if isinstance(record, str):
        return ModuleDescriptor(name=record)
    if not isinstance(record, Mapping):
        raise DescriptorError(f"{path}: expected mapping or module name")

    unknown = sorted(str(key) for key in record if key not in _RECORD_KEYS)
    if unknown:
        raise DescriptorError(f"{path}: unknown fields: {unknown}")

    name = record.get("name")
    if not isinstance(name, str):
        raise DescriptorError(f"{path}: 'name' must be a string")

    module_path = record.get("path")
    if module_path is not None and not isinstance(module_path, str):
        raise DescriptorError(f"{path}: 'path' must be a string")

    capabilities: set[Capability] = set()
    for raw in _string_list(record.get("capabilities"), f"{path}.capabilities"):
        try:
            capabilities.add(Capability(raw.strip().lower()))
        except ValueError as exc:
            allowed = ", ".join(item.value for item in Capability)
            raise DescriptorError(
                f"{path}.capabilities: unknown capability {raw!r}; expected one of: {allowed}"
            ) from exc
    capabilities.update(
        capabilities_from_plugins(_string_list(record.get("plugins"), f"{path}.plugins"))
    )

    return ModuleDescriptor(
        name=name.strip(),
        capabilities=frozenset(capabilities),
        path=module_path.strip() if module_path is not None else None,
    )


def _string_list(value: object, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not _is_sequence(value):
        raise DescriptorError(f"{path}: expected a list of strings")
    items = cast("Sequence[object]", value)
    if not all(isinstance(item, str) for item in items):
        raise DescriptorError(f"{path}: expected a list of strings")
    return tuple(cast("Sequence[str]", items))


def _is_sequence(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


__all__ = ["collect_descriptors", "load_manifest", "parse_manifest"]
