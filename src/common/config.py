"""Helpers for loading runtime configuration profiles."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from .errors import BackendError, ErrorCode
from .models import (
    CounterKind,
    CountingSettings,
    GlobalSettings,
    ProfileSettings,
    ReportMode,
    ResourceLimits,
    RuntimeConfig,
)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().with_name("defaults.json")
DEFAULT_PROFILE = "default"
ALLOWED_ERROR_POLICIES = {"fail-fast", "strict", "replace"}


@dataclass(slots=True)
class ConfigDocument:
    source: Path
    version: int
    global_settings: GlobalSettings
    profiles: Dict[str, ProfileSettings]


def load_runtime_config(
    profile: str = DEFAULT_PROFILE,
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> RuntimeConfig:
    """Load configuration JSON, validate it, and resolve a specific profile."""

    document = load_config_document(
        profile_name=profile,
        config_path=config_path,
        overrides=overrides,
    )
    return RuntimeConfig(global_settings=document.global_settings, profile=document.profiles[profile])


def load_config_document(
    *,
    profile_name: Optional[str] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ConfigDocument:
    cfg_path = config_path or DEFAULT_CONFIG_PATH
    raw = _read_config_json(cfg_path)

    version = _require_positive_int(raw.get("version"), "version", cfg_path)
    global_section = raw.get("global")
    if not isinstance(global_section, Mapping):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'global' section missing in {cfg_path}")

    overrides = overrides or {}
    global_data = {**global_section, **(overrides.get("global") or {})}
    global_settings = _build_global_settings(global_data, cfg_path)

    profiles_section = raw.get("profiles")
    if not isinstance(profiles_section, Mapping) or not profiles_section:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'profiles' section missing in {cfg_path}")

    profile_overrides = overrides.get("profile") or {}
    profiles: Dict[str, ProfileSettings] = {}
    for name, profile_data in profiles_section.items():
        if not isinstance(profile_data, Mapping):
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                f"Profile '{name}' must be an object in {cfg_path}",
            )
        merged = dict(profile_data)
        if profile_name and name == profile_name and profile_overrides:
            merged = {**merged, **profile_overrides}
        profiles[name] = _build_profile_settings(name, merged, cfg_path)

    if profile_name and profile_name not in profiles:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{profile_name}' not found in {cfg_path}",
        )

    return ConfigDocument(
        source=cfg_path,
        version=version,
        global_settings=global_settings,
        profiles=profiles,
    )


def build_counting_settings(
    runtime: RuntimeConfig,
    *,
    counters: Optional[Iterable[CounterKind]] = None,
    mode: Optional[ReportMode] = None,
    chunk_size: Optional[int] = None,
    max_workers: Optional[int] = None,
    count_final_unterminated_line: Optional[bool] = None,
    count_trailing_newlines_only: Optional[bool] = None,
) -> CountingSettings:
    """Resolve per-run settings; explicit arguments win over the profile."""

    global_settings = runtime.global_settings
    profile = runtime.profile
    selection = frozenset(counters) if counters else global_settings.counters
    if chunk_size is not None and chunk_size <= 0:
        raise BackendError(ErrorCode.CONFIG_ERROR, "chunk_size must be greater than zero")
    if max_workers is not None and max_workers <= 0:
        raise BackendError(ErrorCode.CONFIG_ERROR, "max_workers must be greater than zero")
    return CountingSettings(
        counters=selection,
        mode=mode or global_settings.mode,
        chunk_size=chunk_size or profile.chunk_size,
        count_final_unterminated_line=_pick(
            count_final_unterminated_line, global_settings.count_final_unterminated_line
        ),
        count_trailing_newlines_only=_pick(
            count_trailing_newlines_only, global_settings.count_trailing_newlines_only
        ),
        read_block_bytes=profile.read_block_bytes,
        max_workers=max_workers or profile.resource_limits.max_workers,
        error_policy=global_settings.error_policy,
    )


def error_mode_from_policy(policy: str) -> str:
    """Translate human-friendly error policy into Python's decoding error handler."""

    return "strict" if policy.lower() in {"fail-fast", "strict"} else "replace"


# ---------------------------------------------------------------------------
# Internal helpers


def _pick(value: Optional[bool], default: bool) -> bool:
    return default if value is None else value


def _read_config_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' not found") from exc
    except json.JSONDecodeError as exc:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' is not valid JSON: {exc}") from exc


def _build_global_settings(data: Mapping[str, Any], source: Path) -> GlobalSettings:
    defaults = GlobalSettings()
    error_policy = _normalize_error_policy(data.get("error_policy", defaults.error_policy), source)
    counters = _require_counters(data.get("counters"), defaults.counters, source)
    mode = _require_mode(data.get("mode", defaults.mode.value), source)
    return GlobalSettings(
        error_policy=error_policy,
        counters=counters,
        mode=mode,
        count_final_unterminated_line=_require_bool(
            data.get("count_final_unterminated_line", defaults.count_final_unterminated_line),
            "global.count_final_unterminated_line",
            source,
        ),
        count_trailing_newlines_only=_require_bool(
            data.get("count_trailing_newlines_only", defaults.count_trailing_newlines_only),
            "global.count_trailing_newlines_only",
            source,
        ),
    )


def _build_profile_settings(name: str, data: Mapping[str, Any], source: Path) -> ProfileSettings:
    prefix = f"profiles.{name}"
    required_fields = ("description", "chunk_size", "read_block_bytes")
    missing = [field for field in required_fields if field not in data]
    if missing:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{name}' missing fields {missing} in {source}",
        )

    description = _require_string(data.get("description"), f"{prefix}.description", source)
    chunk_size = _require_positive_int(data.get("chunk_size"), f"{prefix}.chunk_size", source)
    read_block_bytes = _require_positive_int(
        data.get("read_block_bytes"), f"{prefix}.read_block_bytes", source
    )

    limits_data = data.get("resource_limits", {}) or {}
    if not isinstance(limits_data, Mapping):
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{prefix}.resource_limits must be an object in {source}",
        )
    resource_limits = ResourceLimits(
        max_workers=_optional_positive_int(
            limits_data.get("max_workers"), f"{prefix}.resource_limits.max_workers", source
        ),
    )

    return ProfileSettings(
        description=description,
        chunk_size=chunk_size,
        read_block_bytes=read_block_bytes,
        resource_limits=resource_limits,
    )


def _normalize_error_policy(value: Any, source: Path) -> str:
    policy = _require_string(value, "global.error_policy", source).lower()
    if policy not in ALLOWED_ERROR_POLICIES:
        allowed = ", ".join(sorted(ALLOWED_ERROR_POLICIES))
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported error_policy '{value}' in {source}. Allowed: {allowed}",
        )
    return "fail-fast" if policy in {"fail-fast", "strict"} else "replace"


def _require_counters(
    value: Any,
    default: FrozenSet[CounterKind],
    source: Path,
) -> FrozenSet[CounterKind]:
    if value is None:
        return default
    if not isinstance(value, list) or not value:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"global.counters must be a non-empty list in {source}",
        )
    counters = set()
    for item in value:
        try:
            counters.add(CounterKind(item))
        except ValueError as exc:
            allowed = ", ".join(counter.value for counter in CounterKind)
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                f"Unknown counter '{item}' in {source}. Allowed: {allowed}",
            ) from exc
    return frozenset(counters)


def _require_mode(value: Any, source: Path) -> ReportMode:
    try:
        return ReportMode(value)
    except ValueError as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"global.mode must be 'total' or 'line' in {source}",
        ) from exc


def _require_bool(value: Any, field: str, source: Path) -> bool:
    if not isinstance(value, bool):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be a boolean in {source}")
    return value


def _require_string(value: Any, field: str, source: Path) -> str:
    if not isinstance(value, str):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be a string in {source}")
    text = value.strip()
    if not text:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be non-empty in {source}")
    return text


def _require_positive_int(value: Any, field: str, source: Path) -> int:
    try:
        num = int(value)
    except (TypeError, ValueError) as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be an integer in {source}",
        ) from exc
    if num <= 0:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be greater than zero in {source}",
        )
    return num


def _optional_positive_int(value: Any, field: str, source: Path) -> Optional[int]:
    if value is None:
        return None
    return _require_positive_int(value, field, source)
