from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from dotenv import load_dotenv

from monitor.errors import ConfigError


logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_FILE = PROJECT_ROOT / ".env"

DEFAULT_TAB_NAME = "Data_Entry"
DEFAULT_CACHE_TTL_SECONDS = 300.0
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0

# Row 2, columns Y..AD of the data entry tab.
DEFAULT_IPC_ROW = 1
DEFAULT_IPC_FIRST_COLUMN = 24

COMPLIANCE_HEADERS: Dict[str, Tuple[str, ...]] = {
    "staff_rfb": ("No_of_Staff_RFB", "No of Staff RFB", "Staff RFB"),
    "cesmps_submitted": ("CESMPS_Submitted", "CESMPS_Submitte", "CEMSPS_Submitted", "CESMPS"),
    "ohs_measures": ("OHS_Measures", "OHS Measures", "OHS"),
}

SITE_ID_HEADERS: Tuple[str, ...] = ("Site ID", "site_id")

TASK_HEADERS: Dict[str, Tuple[str, ...]] = {
    "district": ("District", "district"),
    "site_id": SITE_ID_HEADERS,
    "site_name": ("Site Name", "site_name"),
    "discipline": ("Discipline", "discipline"),
    "task_name": ("Task Name", "task_name"),
    "planned_start": ("Planned Start", "planned_start"),
    "planned_finish": ("Planned Finish", "planned_finish"),
    "planned_duration_days": ("Planned Duration (Days)", "planned_duration_days"),
    "actual_start": ("Actual Start", "actual_start"),
    "actual_finish": ("Actual Finish", "actual_finish"),
    "progress_pct": ("Progress %", "progress_pct"),
    "variance": ("Variance", "Variance"),
    "delay_flag": ("Delay Flag", "delay_flag_calc"),
    "last_updated": ("Last Updated", "last_updated"),
    "remarks": ("Remarks", "remarks"),
    "photo_folder_url": ("Photo Folder", "photo_folder_url"),
    "cover_photo_url": ("Cover Photo", "cover_photo_share_url"),
    "before_photo_url": ("Before Photo", "before_photo_share_url"),
    "after_photo_url": ("After Photo", "after_photo_share_url"),
}


@dataclass(frozen=True)
class Source:
    package_id: str
    package_name: str
    export_url: str


@dataclass(frozen=True)
class Settings:
    sources: Tuple[Source, ...] = ()
    tab_name: str = DEFAULT_TAB_NAME
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    ipc_source_id: Optional[str] = None
    ipc_row: int = DEFAULT_IPC_ROW
    ipc_first_column: int = DEFAULT_IPC_FIRST_COLUMN
    compliance_headers: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(COMPLIANCE_HEADERS))
    task_headers: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(TASK_HEADERS))
    site_id_headers: Tuple[str, ...] = SITE_ID_HEADERS
    log_level: str = "INFO"

    def ipc_source(self) -> Optional[Source]:
        """The one source treated as authoritative for IPC statuses."""
        if not self.sources:
            return None
        if self.ipc_source_id is None:
            return self.sources[0]
        for source in self.sources:
            if source.package_id == self.ipc_source_id:
                return source
        return None


def _as_float(value: object, default: float) -> float:
    try:
        out = float(value)  # type: ignore[arg-type]
    except Exception:
        return default
    return out if out >= 0 else default


def _as_int(value: object, default: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except Exception:
        return default
    return out if out >= 0 else default


def _as_header_list(value: object) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, Iterable):
        return ()
    return tuple(str(v) for v in value if v is not None and str(v) != "")


def _merge_headers(defaults: Dict[str, Tuple[str, ...]], raw: object) -> Dict[str, Tuple[str, ...]]:
    merged = dict(defaults)
    if not isinstance(raw, dict):
        return merged
    for key, names in raw.items():
        if key not in defaults:
            logger.warning("Ignoring unknown header alias field %r", key)
            continue
        aliases = _as_header_list(names)
        if aliases:
            merged[key] = aliases
    return merged


def parse_sources(raw: object) -> Tuple[Source, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("sources must be a list of {package_id, package_name, export_url} objects")
    sources: List[Source] = []
    seen = set()
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"sources[{idx}] must be an object")
        package_id = str(item.get("package_id") or item.get("packageId") or "").strip()
        export_url = str(item.get("export_url") or item.get("publishedXlsxUrl") or "").strip()
        if not package_id or not export_url:
            raise ConfigError(f"sources[{idx}] needs package_id and export_url")
        if package_id in seen:
            raise ConfigError(f"duplicate package_id {package_id!r} in sources")
        seen.add(package_id)
        package_name = str(item.get("package_name") or item.get("packageName") or package_id).strip()
        sources.append(Source(package_id=package_id, package_name=package_name, export_url=export_url))
    return tuple(sources)


def normalize_settings(raw: dict) -> Settings:
    sources = parse_sources(raw.get("sources"))

    tab_name = str(raw.get("tab_name") or DEFAULT_TAB_NAME)
    cache_ttl_seconds = _as_float(raw.get("cache_ttl_seconds", DEFAULT_CACHE_TTL_SECONDS), DEFAULT_CACHE_TTL_SECONDS)
    fetch_timeout_seconds = _as_float(
        raw.get("fetch_timeout_seconds", DEFAULT_FETCH_TIMEOUT_SECONDS), DEFAULT_FETCH_TIMEOUT_SECONDS
    )
    ipc_source_id = raw.get("ipc_source_id") or None
    ipc_row = _as_int(raw.get("ipc_row", DEFAULT_IPC_ROW), DEFAULT_IPC_ROW)
    ipc_first_column = _as_int(raw.get("ipc_first_column", DEFAULT_IPC_FIRST_COLUMN), DEFAULT_IPC_FIRST_COLUMN)

    compliance_headers = _merge_headers(COMPLIANCE_HEADERS, raw.get("compliance_headers"))
    task_headers = _merge_headers(TASK_HEADERS, raw.get("task_headers"))
    site_id_headers = task_headers["site_id"]

    return Settings(
        sources=sources,
        tab_name=tab_name,
        cache_ttl_seconds=cache_ttl_seconds,
        fetch_timeout_seconds=fetch_timeout_seconds,
        ipc_source_id=str(ipc_source_id) if ipc_source_id is not None else None,
        ipc_row=ipc_row,
        ipc_first_column=ipc_first_column,
        compliance_headers=compliance_headers,
        task_headers=task_headers,
        site_id_headers=site_id_headers,
        log_level=str(raw.get("log_level") or "INFO").upper(),
    )


def _read_json(text: str, origin: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{origin} is not valid JSON: {exc}") from exc


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Build settings from the JSON config file plus environment overrides."""
    if ENV_FILE.exists():
        load_dotenv(ENV_FILE)

    raw: Dict[str, object] = {}
    path_value = config_path or os.getenv("MONITOR_CONFIG")
    if path_value:
        path = Path(path_value)
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        data = _read_json(path.read_text(encoding="utf-8"), str(path))
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        raw.update(data)

    env_sources = os.getenv("SHEET_SOURCES")
    if env_sources:
        raw["sources"] = _read_json(env_sources, "SHEET_SOURCES")

    env_map = {
        "SHEET_TAB_NAME": "tab_name",
        "CACHE_TTL_SECONDS": "cache_ttl_seconds",
        "FETCH_TIMEOUT_SECONDS": "fetch_timeout_seconds",
        "IPC_SOURCE_ID": "ipc_source_id",
        "LOG_LEVEL": "log_level",
    }
    for env_key, key in env_map.items():
        value = os.getenv(env_key)
        if value:
            raw[key] = value

    settings = normalize_settings(raw)
    logger.info("Loaded %d sheet source(s), tab=%r, ttl=%ss", len(settings.sources), settings.tab_name, settings.cache_ttl_seconds)
    return settings
