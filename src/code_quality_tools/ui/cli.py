"""Command-line interface router for code-quality-tools."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from code_quality_tools.capabilities import (
    RUNTIME_CAPABILITIES,
    Capability,
    collect_descriptors,
    detect_runtime,
    detect_runtimes,
)
from code_quality_tools.config import load_config, parse_override
from code_quality_tools.constants import DEFAULT_CONFIG_FILE, DEFAULT_MANIFEST_FILE
from code_quality_tools.errors import ConfigurationError
from code_quality_tools.observability import setup_logging
from code_quality_tools.pipeline import PipelinePlan, compose_pipeline
from code_quality_tools.policy import build_policy
from code_quality_tools.ui.render import CLIRenderer, create_renderer

_RUNTIME_CHOICES: tuple[str, ...] = tuple(sorted(item.value for item in RUNTIME_CAPABILITIES))


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="code-quality",
        description=(
            "code-quality-tools: static-analysis wiring for multi-module builds.\n\n"
            "Common workflows:\n"
            "  code-quality plan              Compose verification units per module\n"
            "  code-quality config            Show the effective policy config\n"
            "  code-quality doctor            Check config, manifest and runtimes\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root",
        default=".",
        help="Pipeline root; config references resolve against it (default: cwd).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help=f"Path to policy TOML (default: <root>/{DEFAULT_CONFIG_FILE} if present).",
    )
    common.add_argument("--profile", default=None, help="Optional config profile overlay name.")
    common.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Dotted config override, e.g. tools.detekt.failure_override=false (repeatable).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    manifest = argparse.ArgumentParser(add_help=False)
    manifest.add_argument(
        "--modules",
        dest="manifest_path",
        default=None,
        help=f"Module manifest YAML (default: <root>/{DEFAULT_MANIFEST_FILE}).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # plan ----------------------------------------------------------------
    plan_parser = subparsers.add_parser(
        "plan",
        parents=[common, manifest],
        help="Compose execution units and verify-step edges for every module",
        description=(
            "Resolve every (module, tool) pair and print the resulting pipeline.\n\n"
            "Examples:\n"
            "  code-quality plan\n"
            "  code-quality plan --runtime lint_runtime --json\n"
            "  code-quality plan --set policy.fail_early=false\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    plan_parser.add_argument(
        "--runtime",
        dest="runtimes",
        action="append",
        default=[],
        choices=_RUNTIME_CHOICES,
        help="Declare an analysis runtime as available (repeatable).",
    )
    plan_parser.add_argument(
        "--detect-runtimes",
        action="store_true",
        default=False,
        help="Add runtimes found on PATH to the declared set.",
    )
    plan_parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Compose modules on a thread pool of this size.",
    )
    plan_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    plan_parser.set_defaults(handler=_cmd_plan)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration",
        description=(
            "Display the effective config after merging defaults, file, profile, env and --set.\n\n"
            "Examples:\n"
            "  code-quality config\n"
            "  code-quality config --profile lenient --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    # doctor --------------------------------------------------------------
    doctor_parser = subparsers.add_parser(
        "doctor",
        parents=[common, manifest],
        help="Run offline diagnostics",
        description=(
            "Check config, module manifest and analysis runtimes.\n\n"
            "Examples:\n"
            "  code-quality doctor\n"
            "  code-quality doctor --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    doctor_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    doctor_parser.set_defaults(handler=_cmd_doctor)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_plan(args: argparse.Namespace) -> int:
    root = _root(args)
    config = _load_effective_config(args)
    setup_logging(_observability(config))

    try:
        descriptors = collect_descriptors(_manifest_path(args, root))
        policies = build_policy(config)
    except ConfigurationError as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    max_workers = getattr(args, "max_workers", None)
    if max_workers is not None and max_workers < 1:
        raise CLIError("--max-workers must be >= 1", exit_code=2)

    plan = compose_pipeline(
        descriptors,
        policies,
        root=root,
        available_runtimes=_declared_runtimes(args),
        max_workers=max_workers,
    )

    if _flag(args, "json"):
        _emit_json({"command": "plan", **plan.to_dict()})
        return 0

    _render_plan(_get_renderer(args), plan)
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    payload: dict[str, object] = {
        "command": "config",
        "active_profile": profile,
        "config": config,
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    root = _root(args)
    checks: list[tuple[str, bool, str]] = []

    # 1. Config check
    config: dict[str, object] | None = None
    try:
        config = _load_effective_config(args)
        checks.append(("config", True, "loaded successfully"))
    except CLIError as exc:
        checks.append(("config", False, str(exc)))

    # 2. Policy check
    if config is not None:
        try:
            build_policy(config)
            checks.append(("policy", True, "all tool settings valid"))
        except ConfigurationError as exc:
            checks.append(("policy", False, str(exc)))
    else:
        checks.append(("policy", False, "skipped (config failed)"))

    # 3. Manifest check
    manifest_path = _manifest_path(args, root)
    if manifest_path.exists():
        try:
            descriptors = collect_descriptors(manifest_path)
            checks.append(("manifest", True, f"{len(descriptors)} module(s)"))
        except ConfigurationError as exc:
            checks.append(("manifest", False, str(exc)))
    else:
        checks.append(("manifest", False, f"not found: {manifest_path.as_posix()}"))

    # 4. Runtimes; absence only yields advisories at plan time
    for capability in sorted(RUNTIME_CAPABILITIES):
        info = detect_runtime(capability)
        label = f"runtime:{capability.value}"
        if info is not None:
            version = info.version or "unknown version"
            checks.append((label, True, f"found at {info.binary_path} ({version})"))
        else:
            checks.append((label, True, "not found (dependent units will carry a warning)"))

    checks_payload: list[dict[str, object]] = [
        {"name": name, "status": "ok" if passed else "fail", "detail": detail}
        for name, passed, detail in checks
    ]
    payload: dict[str, object] = {"command": "doctor", "checks": checks_payload}

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.heading("code-quality doctor")
    for name, passed, detail in checks:
        if passed:
            renderer.ok(f"{name}: {detail}")
        else:
            renderer.fail(f"{name}: {detail}")

    if all(passed for _, passed, _ in checks):
        renderer.text("\nAll checks passed.")
    else:
        renderer.text("\nSome checks failed. See details above.")
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(verbose=_flag(args, "verbose"))


def _render_plan(renderer: CLIRenderer, plan: PipelinePlan) -> None:
    units = plan.units
    renderer.kv("Modules", len(plan.modules))
    renderer.kv("Execution units", len(units))
    renderer.table(
        ("STEP", "TOOL", "FAIL ON", "VERIFY", "CONFIG"),
        [
            (
                unit.step_id,
                unit.tool,
                str(unit.settings.fail_on).lower(),
                "yes" if unit.attaches_to_verify else "no",
                unit.config_path or "-",
            )
            for unit in units
        ],
        title="Units:",
    )

    compile_steps = [step for module in plan.modules for step in module.compile_steps]
    if compile_steps:
        renderer.section("Compile steps:")
        renderer.items(
            [
                f"{step.step_id} all_warnings_as_errors={str(step.all_warnings_as_errors).lower()}"
                for step in compile_steps
            ]
        )

    if renderer.verbose:
        renderer.section("Verify prerequisites:")
        renderer.items(
            [
                f"{module.verify_step} <- {', '.join(module.prerequisites) or '(none)'}"
                for module in plan.modules
            ]
        )
        skipped = [
            f"{item.module_name}:{item.tool} ({item.reason.value})"
            for module in plan.modules
            for item in module.skipped
        ]
        if skipped:
            renderer.section("Skipped:")
            renderer.items(skipped)

    if plan.warnings:
        renderer.section("Warnings:")
        for warning in plan.warnings:
            renderer.warning(warning.message)


# ---------------------------------------------------------------------------
# Helpers: config, paths, runtimes
# ---------------------------------------------------------------------------


def _root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "root", None), "root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"root is not a directory: {candidate}", exit_code=2)
    return candidate


def _load_effective_config(args: argparse.Namespace) -> dict[str, object]:
    root = _root(args)
    config_path: str | Path | None = _optional_str(getattr(args, "config_path", None))
    if config_path is None and (root / DEFAULT_CONFIG_FILE).is_file():
        config_path = root / DEFAULT_CONFIG_FILE
    profile = _optional_str(getattr(args, "profile", None))

    try:
        overrides = dict(parse_override(raw) for raw in getattr(args, "overrides", None) or ())
        loaded = load_config(config_path, profile=profile, cli_overrides=overrides)
    except ConfigurationError as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    return {key: value for key, value in loaded.items()}


def _manifest_path(args: argparse.Namespace, root: Path) -> Path:
    raw = _optional_str(getattr(args, "manifest_path", None))
    if raw is None:
        return root / DEFAULT_MANIFEST_FILE
    candidate = Path(raw).expanduser()
    return candidate if candidate.is_absolute() else root / candidate


def _declared_runtimes(args: argparse.Namespace) -> frozenset[Capability]:
    declared = {Capability(value) for value in getattr(args, "runtimes", None) or ()}
    if _flag(args, "detect_runtimes"):
        declared |= detect_runtimes()
    return frozenset(declared)


def _observability(config: Mapping[str, object]) -> Mapping[str, object]:
    section = config.get("observability")
    return section if isinstance(section, Mapping) else {}


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=2)
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(f"invalid {name}: value cannot be empty", exit_code=2)
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=2)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
