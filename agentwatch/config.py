"""agentwatch configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


HOME_DIR = Path.home()

# Monitored tool data roots (read-only)
OPENCODE_DATA_DIR = _env_path("OPENCODE_DATA_DIR", HOME_DIR / ".local" / "share" / "opencode")
CODEX_HOME = _env_path("CODEX_HOME", HOME_DIR / ".codex")
CLAUDE_CONFIG_DIR = _env_path("CLAUDE_CONFIG_DIR", HOME_DIR / ".claude")

# Monitor's own state files
STATE_DIR = _env_path("AGENTWATCH_STATE_DIR", HOME_DIR / ".agentwatch")
MONITOR_SETTINGS_FILE = STATE_DIR / "monitor-settings.json"
REPO_BINDINGS_FILE = STATE_DIR / "monitor-repo-bindings.json"

# Aging thresholds
IDLE_AFTER_MS = _env_int("AGENTWATCH_IDLE_AFTER_MS", 20_000)
DONE_AFTER_MS = _env_int("AGENTWATCH_DONE_AFTER_MS", 90_000)

# Per-poll scan bounds
CODEX_TAIL_BYTES = 65_536
MAX_CODEX_FILES = 120
MAX_CLAUDE_FILES = 120
MAX_OPENCODE_FILES = 800
MAX_OPENCODE_PART_FILES = 900
MAX_OPENCODE_DB_SESSIONS = 800
MAX_OPENCODE_DB_PARTS = 1500

# Display limits
MAX_MONITOR_TEXT_CHARS = 180
MAX_AGENT_NAME_CHARS = 56
MAX_RECENT_EVENTS = 20

# Observability
OTEL_ENABLED = _env_bool("AGENTWATCH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("AGENTWATCH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("AGENTWATCH_OTEL_SERVICE_NAME", "agentwatch")
PROM_PORT = _env_int("AGENTWATCH_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("AGENTWATCH_HOST", "127.0.0.1")
PORT = _env_int("AGENTWATCH_PORT", 8765)

# CORS
FRONTEND_ORIGIN = os.getenv("AGENTWATCH_FRONTEND_ORIGIN", "http://localhost:3000")


def opencode_data_root() -> Path:
    """Return the OpenCode data root, tolerating a configured `storage` dir."""
    configured = OPENCODE_DATA_DIR
    if configured.name.lower() == "storage":
        return configured.parent
    return configured


def opencode_storage_root() -> Path:
    return opencode_data_root() / "storage"


def opencode_db_file() -> Path:
    return opencode_data_root() / "opencode.db"


def codex_sessions_root() -> Path:
    return CODEX_HOME / "sessions"


def claude_projects_root() -> Path:
    return CLAUDE_CONFIG_DIR / "projects"
