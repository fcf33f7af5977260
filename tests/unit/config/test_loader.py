"""
code-quality-tools — unit tests for config loader

File: tests/unit/config/test_loader.py

Purpose
- Validate deterministic config loading from defaults, TOML, profiles, env overrides,
  and CLI overrides.

What this test file should cover
- Precedence: CLI > env > profile > file > defaults.
- Deterministic env var path mapping and type coercion, including optional overrides.
- camelCase keys in TOML files.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from code_quality_tools.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    load_config,
    parse_override,
)
from code_quality_tools.config.schema import ConfigValidationError
from code_quality_tools.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_when_no_file_is_present() -> None:
    config = load_config(None, environ={})

    assert config["policy"]["fail_early"] is True
    assert config["tools"]["checkstyle"]["tool_version"] == "10.12.4"


def test_explicit_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", environ={})


def test_invalid_toml_raises_load_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "code-quality.toml", "[policy\nfail_early = ")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(path, environ={})


def test_loader_precedence_file_profile_env_cli(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "code-quality.toml",
        """
[policy]
fail_early = true
html_reports = false

[tools.detekt]
parallel = false

[profiles.ci]
policy = { html_reports = true }
tools = { detekt = { parallel = true } }
""".strip(),
    )

    from_file = load_config(path, environ={})
    assert from_file["policy"]["html_reports"] is False

    with_profile = load_config(path, profile="ci", environ={})
    assert with_profile["policy"]["html_reports"] is True
    assert with_profile["tools"]["detekt"]["parallel"] is True

    with_env = load_config(
        path,
        profile="ci",
        environ={"CODE_QUALITY_TOOLS_DETEKT_PARALLEL": "false"},
    )
    assert with_env["tools"]["detekt"]["parallel"] is False

    with_cli = load_config(
        path,
        profile="ci",
        environ={"CODE_QUALITY_TOOLS_DETEKT_PARALLEL": "false"},
        cli_overrides={"tools.detekt.parallel": True},
    )
    assert with_cli["tools"]["detekt"]["parallel"] is True


def test_profile_can_be_selected_from_env() -> None:
    config = load_config(None, environ={"CODE_QUALITY_PROFILE": "lenient"})

    assert config["policy"]["fail_early"] is False


def test_env_optional_overrides_are_bound() -> None:
    config = load_config(
        None,
        environ={
            "CODE_QUALITY_TOOLS_DETEKT_FAILURE_OVERRIDE": "no",
            "CODE_QUALITY_TOOLS_LINT_BASELINE_FILE": "lint-baseline.xml",
            "CODE_QUALITY_TOOLS_CHECKSTYLE_CONFIG_FILE": "unset",
            "CODE_QUALITY_POLICY_IGNORE_PROJECTS": "legacy, sample ,",
        },
    )

    assert config["tools"]["detekt"]["failure_override"] is False
    assert config["tools"]["lint"]["baseline_file"] == "lint-baseline.xml"
    assert config["tools"]["checkstyle"]["config_file"] is None
    assert config["policy"]["ignore_projects"] == ["legacy", "sample"]


def test_env_boolean_coercion_error_names_variable() -> None:
    with pytest.raises(ConfigLoadError, match="CODE_QUALITY_POLICY_FAIL_EARLY"):
        load_config(None, environ={"CODE_QUALITY_POLICY_FAIL_EARLY": "sometimes"})


def test_camel_case_file_keys_are_normalized(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "code-quality.toml",
        """
[policy]
failEarly = false
ignoreProjects = ["legacy"]

[tools.checkstyle]
showViolations = true
toolVersion = "10.0"
""".strip(),
    )

    config = load_config(path, environ={})

    assert config["policy"]["fail_early"] is False
    assert config["policy"]["ignore_projects"] == ["legacy"]
    assert config["tools"]["checkstyle"]["report_verbosity_override"] is True
    assert config["tools"]["checkstyle"]["tool_version"] == "10.0"


def test_unknown_tool_field_fails_validation(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "code-quality.toml", "[tools.ktlint]\nreporter = 'plain'\n")

    with pytest.raises(ConfigValidationError) as error:
        load_config(path, environ={})
    assert any(issue.path == "tools.ktlint.reporter" for issue in error.value.issues)
    assert isinstance(error.value, ConfigurationError)


def test_parse_override_uses_toml_value_types() -> None:
    assert parse_override("policy.fail_early=false") == ("policy.fail_early", False)
    assert parse_override("tools.ktlint.include=['**/*.kt']") == (
        "tools.ktlint.include",
        ["**/*.kt"],
    )
    assert parse_override("tools.detekt.baseline_file=none") == ("tools.detekt.baseline_file", None)
    assert parse_override("tools.lint.text_output=build/lint.txt") == (
        "tools.lint.text_output",
        "build/lint.txt",
    )

    with pytest.raises(ConfigLoadError):
        parse_override("policy.fail_early")


def test_dump_effective_config_is_deterministic() -> None:
    first = dump_effective_config(load_config(None, environ={}))
    second = dump_effective_config(load_config(None, environ={}))

    assert first == second
    assert json.loads(first)["meta"]["schema_version"] == 1
