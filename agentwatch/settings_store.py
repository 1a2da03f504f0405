"""Monitor settings and repo binding persistence."""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from agentwatch import config
from agentwatch.display import agent_key
from agentwatch.models import MonitorSettings

logger = logging.getLogger("agentwatch.settings")

_MIN_INTERVAL_MS = 500
_FONT_MIN_PX = 14
_FONT_MAX_PX = 40

_BOOL_FIELDS = ("enabled", "enableClaude", "enableOpencode", "enableCodex", "enableGit", "enablePr")
_INTERVAL_FIELDS = ("flushIntervalMs", "sourcePollIntervalMs", "gitPollIntervalMs", "prPollIntervalMs")


class SettingsStoreError(Exception):
    """Raised when the monitor's own state files cannot be written."""


def _finite_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _as_interval(value: Any, fallback: int) -> int:
    number = _finite_number(value)
    if number is None or number < _MIN_INTERVAL_MS:
        return fallback
    return int(round(number))


def _as_font_px(value: Any, fallback: int) -> int:
    number = _finite_number(value)
    if number is None:
        return fallback
    rounded = int(round(number))
    if rounded < _FONT_MIN_PX or rounded > _FONT_MAX_PX:
        return fallback
    return rounded


def _as_idle_count(value: Any, fallback: int) -> int:
    number = _finite_number(value)
    if number is None:
        return fallback
    rounded = int(round(number))
    return fallback if rounded < 0 else rounded


def sanitize_monitor_settings(raw: Any) -> MonitorSettings:
    """Coerce a user-supplied settings payload, field by field, onto defaults."""
    defaults = MonitorSettings()
    value = raw if isinstance(raw, dict) else {}
    fields: dict[str, Any] = {}
    for name in _BOOL_FIELDS:
        candidate = value.get(name)
        fields[name] = candidate if isinstance(candidate, bool) else getattr(defaults, name)
    for name in _INTERVAL_FIELDS:
        fields[name] = _as_interval(value.get(name), getattr(defaults, name))
    fields["agentLabelFontPx"] = _as_font_px(value.get("agentLabelFontPx"), defaults.agentLabelFontPx)
    fields["maxIdleAgents"] = _as_idle_count(value.get("maxIdleAgents"), defaults.maxIdleAgents)
    return MonitorSettings(**fields)


def _read_json_file(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json_file(path: Path, value: Any) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(value, indent=2), encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Failed to write %s: %s", path, exc)
        raise SettingsStoreError(str(exc)) from exc


def read_monitor_settings() -> MonitorSettings:
    path = config.MONITOR_SETTINGS_FILE
    try:
        raw = _read_json_file(path)
    except FileNotFoundError:
        return MonitorSettings()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable monitor settings %s: %s", path, exc)
        return MonitorSettings()
    return sanitize_monitor_settings(raw)


def write_monitor_settings(raw: Any) -> MonitorSettings:
    settings = sanitize_monitor_settings(raw)
    _write_json_file(config.MONITOR_SETTINGS_FILE, settings.model_dump())
    return settings


def read_repo_bindings() -> dict[str, str]:
    """Load the user's `source:sessionId` → repo path overrides."""
    path = config.REPO_BINDINGS_FILE
    try:
        raw = _read_json_file(path)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable repo bindings %s: %s", path, exc)
        return {}
    if not isinstance(raw, dict):
        return {}
    return {
        str(key): value
        for key, value in raw.items()
        if isinstance(value, str) and value.strip()
    }


def bind_repo(source: str, session_id: str, repo_path: str) -> dict[str, str]:
    bindings = read_repo_bindings()
    bindings[agent_key(source, session_id)] = repo_path
    _write_json_file(config.REPO_BINDINGS_FILE, bindings)
    return bindings
