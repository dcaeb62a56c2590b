import os
from pathlib import Path
from dotenv import load_dotenv
from loguru import logger
from streamrelay.utils.logger import config as configure_logger

# Load .env as early as possible so all downstream imports see the intended env
load_dotenv()

# Configure logger after env is loaded (LOG_LEVEL honored)
configure_logger()

logger.debug("Checking if running in Docker...")
IN_DOCKER = Path("/.dockerenv").exists()
logger.debug(f"IN_DOCKER={IN_DOCKER}")


def _as_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    v = val.strip().lower()
    return v in ("1", "true", "yes", "on")


def _as_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; defaulting to {default}.")
        return default


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; defaulting to {default}.")
        return default


def _str_to_path(val: str | os.PathLike[str] | None) -> Path | None:
    if not val:
        return None
    try:
        return Path(val).expanduser()
    except Exception:
        return None


def _ensure_dir(candidates: list[Path], label: str) -> Path:
    """Return first usable path from candidates, creating it if needed.

    Logs fallbacks and exits with a clear error if none are writable.
    """
    for p in candidates:
        try:
            p.mkdir(parents=True, exist_ok=True)
            resolved = p.resolve()
            logger.info(f"{label} using: {resolved}")
            return resolved
        except PermissionError as e:
            logger.warning(f"No permission to create {label} at {p}: {e}")
        except OSError as e:
            logger.warning(f"Cannot create {label} at {p}: {e}")

    logger.error(f"No writable candidate found for {label}. Tried: {candidates}")
    raise SystemExit(
        f"Fatal: {label} is not writable. Please fix your volume mounts or set"
        f" a writable {label} via environment variables. Tried:"
        f" {', '.join(str(c) for c in candidates)}"
    )


# --- Data directory (SQLite cache, logs, watch-list) ---
env_data = os.getenv("DATA_DIR")
env_data_path = _str_to_path(env_data.strip() if env_data else None)
default_data = Path("/data") if IN_DOCKER else (Path.cwd() / "data")

data_candidates: list[Path] = []
if env_data_path:
    data_candidates.append(env_data_path)
data_candidates.extend(
    [
        default_data,
        Path.cwd() / "data",
        Path("/tmp/streamrelay"),
    ]
)
DATA_DIR = _ensure_dir(data_candidates, "DATA_DIR")

# --- Cache store ---
# 'sqlite' keeps entries across restarts; 'memory' is process-local.
CACHE_BACKEND = os.getenv("CACHE_BACKEND", "sqlite").strip().lower()
if CACHE_BACKEND not in ("sqlite", "memory"):
    logger.warning(f"Invalid CACHE_BACKEND={CACHE_BACKEND!r}; defaulting to 'sqlite'.")
    CACHE_BACKEND = "sqlite"
CACHE_DATABASE_URL = os.getenv("CACHE_DATABASE_URL", "").strip()
CACHE_NAMESPACE = os.getenv("CACHE_NAMESPACE", "GLOBAL").strip() or "GLOBAL"
PLAYLIST_CACHE_NAMESPACE = (
    os.getenv("PLAYLIST_CACHE_NAMESPACE", "m3u8").strip() or "m3u8"
)
# Rewritten playlists go stale fast (tokens, live windows); keep this short.
PLAYLIST_CACHE_TTL_SECONDS = max(1, _as_int("PLAYLIST_CACHE_TTL_SECONDS", 300))
FAST_SOURCE_TTL_SECONDS = max(1, _as_int("FAST_SOURCE_TTL_SECONDS", 24 * 60 * 60))
# Interval for deleting physically expired rows (minutes). 0 disables.
CACHE_PURGE_INTERVAL_MIN = _as_int("CACHE_PURGE_INTERVAL_MIN", 30)
logger.debug(
    f"CACHE_BACKEND={CACHE_BACKEND}, CACHE_NAMESPACE={CACHE_NAMESPACE}, "
    f"PLAYLIST_CACHE_TTL_SECONDS={PLAYLIST_CACHE_TTL_SECONDS}, "
    f"FAST_SOURCE_TTL_SECONDS={FAST_SOURCE_TTL_SECONDS}"
)

# --- Outbound HTTP ---
DEFAULT_USER_AGENT = os.getenv(
    "DEFAULT_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
).strip()
UPSTREAM_TIMEOUT_SECONDS = _as_float("UPSTREAM_TIMEOUT_SECONDS", 10.0)
PROBE_TIMEOUT_SECONDS = _as_float("PROBE_TIMEOUT_SECONDS", 8.0)
PROBE_SAMPLE_BYTES = max(1024, _as_int("PROBE_SAMPLE_BYTES", 512 * 1024))
logger.debug(
    f"UPSTREAM_TIMEOUT_SECONDS={UPSTREAM_TIMEOUT_SECONDS}, "
    f"PROBE_TIMEOUT_SECONDS={PROBE_TIMEOUT_SECONDS}, PROBE_SAMPLE_BYTES={PROBE_SAMPLE_BYTES}"
)

# Optional override for self-referencing proxy links (e.g. behind a reverse proxy).
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").strip()
logger.debug(f"PUBLIC_BASE_URL={PUBLIC_BASE_URL or '<request origin>'}")

# --- Catalog collaborator ---
CATALOG_API_URL = os.getenv("CATALOG_API_URL", "").strip()
CATALOG_TIMEOUT_SECONDS = _as_float("CATALOG_TIMEOUT_SECONDS", 15.0)
# Comma-separated "key:Display Name" pairs, e.g. "s1:Site One,s2:Site Two"
_raw_sites = os.getenv("CATALOG_SITES", "")
CATALOG_SITES: list[dict[str, str]] = []
for _entry in _raw_sites.split(","):
    _entry = _entry.strip()
    if not _entry:
        continue
    _key, _, _name = _entry.partition(":")
    _key = _key.strip()
    if _key:
        CATALOG_SITES.append({"key": _key, "name": _name.strip() or _key})
logger.debug(f"CATALOG_API_URL={CATALOG_API_URL or '<unset>'}, CATALOG_SITES={CATALOG_SITES}")

# --- Prewarm scheduler ---
PREWARM_ENABLED = _as_bool(os.getenv("PREWARM_ENABLED", None), False)
PREWARM_WATCHLIST_FILE = _str_to_path(
    os.getenv("PREWARM_WATCHLIST_FILE", "").strip() or None
) or (DATA_DIR / "watchlist.json")
PREWARM_INITIAL_DELAY_SECONDS = _as_float("PREWARM_INITIAL_DELAY_SECONDS", 3.0)
PREWARM_MONITOR_INTERVAL_SECONDS = _as_float("PREWARM_MONITOR_INTERVAL_SECONDS", 2.0)
PREWARM_IDLE_INTERVAL_SECONDS = _as_float("PREWARM_IDLE_INTERVAL_SECONDS", 60.0)
PREWARM_WORKER_POLL_SECONDS = _as_float("PREWARM_WORKER_POLL_SECONDS", 3.0)
PREWARM_ITEM_DELAY_SECONDS = _as_float("PREWARM_ITEM_DELAY_SECONDS", 5.0)
PREWARM_MAX_MATCHES = max(1, _as_int("PREWARM_MAX_MATCHES", 5))
logger.debug(
    f"PREWARM_ENABLED={PREWARM_ENABLED}, PREWARM_WATCHLIST_FILE={PREWARM_WATCHLIST_FILE}, "
    f"PREWARM_MONITOR_INTERVAL_SECONDS={PREWARM_MONITOR_INTERVAL_SECONDS}, "
    f"PREWARM_IDLE_INTERVAL_SECONDS={PREWARM_IDLE_INTERVAL_SECONDS}, "
    f"PREWARM_ITEM_DELAY_SECONDS={PREWARM_ITEM_DELAY_SECONDS}"
)

# --- Auth collaborator ---
AUTH_SECRET = os.getenv("AUTH_SECRET", "").strip()
OWNER_USERNAME = os.getenv("OWNER_USERNAME", "").strip()
# Comma-separated "username:role" pairs granting roles independent of the cookie.
_raw_admins = os.getenv("ADMIN_USERS", "")
ADMIN_USERS: dict[str, str] = {}
for _entry in _raw_admins.split(","):
    _user, _, _role = _entry.strip().partition(":")
    if _user.strip():
        ADMIN_USERS[_user.strip()] = (_role.strip() or "admin").lower()
if not AUTH_SECRET:
    logger.warning("AUTH_SECRET is unset; elevated endpoints will reject every request.")

# --- HTTP server ---
_raw_cors = os.getenv("CORS_ORIGINS", "*")
CORS_ORIGINS = [o.strip() for o in _raw_cors.split(",") if o.strip()]
CORS_ALLOW_CREDENTIALS = _as_bool(os.getenv("CORS_ALLOW_CREDENTIALS", None), False)

STREAMRELAY_RELOAD = _as_bool(os.getenv("STREAMRELAY_RELOAD", None), False)
STREAMRELAY_HOST = os.getenv("STREAMRELAY_HOST", "0.0.0.0").strip() or "0.0.0.0"
STREAMRELAY_PORT = int(os.getenv("STREAMRELAY_PORT", "8000") or 8000)
