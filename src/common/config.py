"""Helpers for loading runtime configuration profiles."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import BackendError, ErrorCode
from .models import EnrichmentSettings, GlobalSettings, ProfileSettings, RuntimeConfig

DEFAULT_CONFIG_PATH = Path("config/defaults.json")
ALLOWED_ERROR_POLICIES = {"skip", "replace"}
ALLOWED_FAILURE_POLICIES = {"keep", "drop"}


@dataclass(slots=True)
class ConfigDocument:
    source: Path
    version: int
    global_settings: GlobalSettings
    profiles: Dict[str, ProfileSettings]
    enrichment: EnrichmentSettings


def load_runtime_config(
    profile: str = "low_memory",
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
    return RuntimeConfig(
        global_settings=document.global_settings,
        profile=document.profiles[profile],
        enrichment=document.enrichment,
    )


def load_config_document(
    *,
    profile_name: Optional[str] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ConfigDocument:
    """Read every profile of a config file.

    ``overrides`` holds per-section replacements (``global``, ``profile`` and
    ``enrichment``); the ``profile`` entry only applies to ``profile_name``.
    """

    source = config_path or DEFAULT_CONFIG_PATH
    raw = _read_config_json(source)
    overrides = overrides or {}

    version = _require_positive_int(raw.get("version"), "version", source)
    global_settings = _build_global_settings(
        _section(raw, "global", source, overrides.get("global")), source
    )
    enrichment = _build_enrichment_settings(
        _section(raw, "enrichment", source, overrides.get("enrichment"), required=False), source
    )

    profiles_section = _section(raw, "profiles", source)
    if not profiles_section:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"No profiles defined in {source}")
    if profile_name and profile_name not in profiles_section:
        known = ", ".join(sorted(profiles_section))
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{profile_name}' not found in {source} (known: {known})",
        )
    profiles = {
        name: _build_profile_settings(
            name,
            _section(
                profiles_section,
                name,
                source,
                overrides.get("profile") if name == profile_name else None,
            ),
            source,
        )
        for name in profiles_section
    }

    return ConfigDocument(
        source=source,
        version=version,
        global_settings=global_settings,
        profiles=profiles,
        enrichment=enrichment,
    )


def decode_errors_from_policy(policy: str) -> str:
    """Translate the line error policy into Python's codec error handler."""

    return "replace" if policy.lower() == "replace" else "strict"


# ---------------------------------------------------------------------------
# Internal helpers


def _read_config_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:  # pragma: no cover - depends on filesystem
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' not found") from exc
    except json.JSONDecodeError as exc:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' is not valid JSON: {exc}") from exc


def _section(
    parent: Mapping[str, Any],
    name: str,
    source: Path,
    override: Optional[Mapping[str, Any]] = None,
    *,
    required: bool = True,
) -> Dict[str, Any]:
    value = parent.get(name)
    if value is None and not required:
        value = {}
    if not isinstance(value, Mapping):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'{name}' must be an object in {source}")
    return {**value, **(override or {})}


def _build_global_settings(data: Mapping[str, Any], source: Path) -> GlobalSettings:
    error_policy = _require_choice(
        data.get("error_policy", GlobalSettings().error_policy),
        "global.error_policy",
        ALLOWED_ERROR_POLICIES,
        source,
    )
    failure_policy = _require_choice(
        data.get("failure_policy", GlobalSettings().failure_policy),
        "global.failure_policy",
        ALLOWED_FAILURE_POLICIES,
        source,
    )
    return GlobalSettings(error_policy=error_policy, failure_policy=failure_policy)


def _build_profile_settings(name: str, data: Mapping[str, Any], source: Path) -> ProfileSettings:
    prefix = f"profiles.{name}"
    required_fields = ("description", "chunk_size", "batch_rows")
    missing = [field for field in required_fields if field not in data]
    if missing:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{name}' missing fields {missing} in {source}",
        )

    description = _require_string(data.get("description"), f"{prefix}.description", source)
    chunk_size = _require_positive_int(data.get("chunk_size"), f"{prefix}.chunk_size", source)
    batch_rows = _require_positive_int(data.get("batch_rows"), f"{prefix}.batch_rows", source)
    max_remainder_bytes = _optional_positive_int(
        data.get("max_remainder_bytes"), f"{prefix}.max_remainder_bytes", source
    )
    max_parallel_requests = _require_positive_int(
        data.get("max_parallel_requests", ProfileSettings(description="").max_parallel_requests),
        f"{prefix}.max_parallel_requests",
        source,
    )
    if max_remainder_bytes is not None and max_remainder_bytes < chunk_size:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{prefix}.max_remainder_bytes must be at least chunk_size in {source}",
        )

    return ProfileSettings(
        description=description,
        chunk_size=chunk_size,
        max_remainder_bytes=max_remainder_bytes,
        batch_rows=batch_rows,
        max_parallel_requests=max_parallel_requests,
    )


def _build_enrichment_settings(data: Mapping[str, Any], source: Path) -> EnrichmentSettings:
    defaults = EnrichmentSettings()
    temperature = data.get("temperature", defaults.temperature)
    try:
        temperature = float(temperature)
    except (TypeError, ValueError) as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"enrichment.temperature must be a number in {source}",
        ) from exc
    return EnrichmentSettings(
        model=_require_string(data.get("model", defaults.model), "enrichment.model", source),
        temperature=temperature,
        phone_field=_require_string(
            data.get("phone_field", defaults.phone_field), "enrichment.phone_field", source
        ),
        address_field=_require_string(
            data.get("address_field", defaults.address_field), "enrichment.address_field", source
        ),
    )


def _require_choice(value: Any, field: str, allowed: set[str], source: Path) -> str:
    choice = _require_string(value, field, source).lower()
    if choice not in allowed:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported {field} '{value}' in {source}. Allowed: {', '.join(sorted(allowed))}",
        )
    return choice


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
