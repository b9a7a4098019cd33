"""Tests for runtime configuration loader."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from common.config import build_counting_settings, error_mode_from_policy, load_runtime_config
from common.errors import BackendError, ErrorCode
from common.models import DEFAULT_COUNTERS, CounterKind, ReportMode


def test_load_default_profile() -> None:
    config = load_runtime_config()
    assert config.profile.chunk_size == 10_000
    assert config.profile.resource_limits.max_workers is None
    assert config.global_settings.counters == DEFAULT_COUNTERS
    assert config.global_settings.mode is ReportMode.TOTAL
    assert config.global_settings.count_final_unterminated_line is False


def test_load_low_memory_profile() -> None:
    config = load_runtime_config("low_memory")
    assert config.profile.chunk_size == 1000
    assert config.profile.resource_limits.max_workers == 1


def test_build_counting_settings_prefers_explicit_values() -> None:
    runtime = load_runtime_config("low_memory")
    settings = build_counting_settings(
        runtime,
        counters=[CounterKind.GRAPHEMES],
        mode=ReportMode.LINE,
        chunk_size=7,
        count_final_unterminated_line=True,
    )
    assert settings.counters == frozenset({CounterKind.GRAPHEMES})
    assert settings.mode is ReportMode.LINE
    assert settings.chunk_size == 7
    assert settings.max_workers == 1
    assert settings.read_block_bytes == 16384
    assert settings.count_final_unterminated_line is True
    assert settings.count_trailing_newlines_only is False


def test_build_counting_settings_rejects_bad_chunk_size() -> None:
    with pytest.raises(BackendError) as exc:
        build_counting_settings(load_runtime_config(), chunk_size=0)
    assert exc.value.code == ErrorCode.CONFIG_ERROR


def test_error_mode_resolution() -> None:
    assert error_mode_from_policy("fail-fast") == "strict"
    assert error_mode_from_policy("replace") == "replace"


def test_missing_profile_raises_backend_error(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, {"version": 1, "global": {}, "profiles": {"only": _profile_payload()}})
    with pytest.raises(BackendError) as exc:
        load_runtime_config("missing", config_path=config_path)
    assert exc.value.code == ErrorCode.CONFIG_ERROR


def test_invalid_error_policy_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        {"version": 1, "global": {"error_policy": "panic"}, "profiles": {"default": _profile_payload()}},
    )
    with pytest.raises(BackendError) as exc:
        load_runtime_config(config_path=config_path)
    assert "error_policy" in str(exc.value)


def test_unknown_counter_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        {"version": 1, "global": {"counters": ["lines", "sentences"]}, "profiles": {"default": _profile_payload()}},
    )
    with pytest.raises(BackendError) as exc:
        load_runtime_config(config_path=config_path)
    assert "sentences" in str(exc.value)


def test_invalid_mode_and_flags_rejected(tmp_path: Path) -> None:
    for global_section in ({"mode": "paragraph"}, {"count_final_unterminated_line": "yes"}):
        config_path = _write_config(
            tmp_path,
            {"version": 1, "global": global_section, "profiles": {"default": _profile_payload()}},
        )
        with pytest.raises(BackendError):
            load_runtime_config(config_path=config_path)


def test_profile_missing_fields(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        {"version": 1, "global": {}, "profiles": {"default": {"description": "partial"}}},
    )
    with pytest.raises(BackendError) as exc:
        load_runtime_config(config_path=config_path)
    assert "chunk_size" in str(exc.value)


def test_overrides_apply_to_selected_profile(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        {"version": 1, "global": {}, "profiles": {"default": _profile_payload()}},
    )
    config = load_runtime_config(
        config_path=config_path,
        overrides={"global": {"mode": "line"}, "profile": {"chunk_size": 3}},
    )
    assert config.global_settings.mode is ReportMode.LINE
    assert config.profile.chunk_size == 3


def test_invalid_json_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(BackendError) as exc:
        load_runtime_config(config_path=path)
    assert exc.value.code == ErrorCode.CONFIG_ERROR


def _profile_payload() -> dict:
    return {
        "description": "test",
        "chunk_size": 100,
        "read_block_bytes": 4096,
        "resource_limits": {"max_workers": 2},
    }


def _write_config(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path
