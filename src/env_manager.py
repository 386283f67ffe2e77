"""
Central env manager for the content API. Loads .env once into local variables; other code imports from here.

Uses python-dotenv with override=False so that already-set env vars (e.g. NODE_ENV=production in the shell)
take precedence over .env. Load order: .env then .env.local (if present); .env.local overrides .env for
keys not already set. Keep local-only values in .env.local and add it to .gitignore.
"""
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

_ROOT = Path(__file__).resolve().parent.parent


def _load_env() -> None:
    try:
        from dotenv import load_dotenv
        # override=False: shell / process env wins (e.g. NODE_ENV=production)
        load_dotenv(_ROOT / ".env", override=False)
        local_env = _ROOT / ".env.local"
        if local_env.is_file():
            load_dotenv(local_env, override=False)
    except ImportError:
        pass


_load_env()

# Path used for .env.local (for debug)
_ENV_LOCAL_PATH = _ROOT / ".env.local"

# Must import after _load_env so .env is applied
import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in ("false", "0", "no", "off", "")


def _split_paths(raw: str) -> List[Path]:
    return [Path(p.strip()) for p in raw.split(os.pathsep) if p.strip()]


# --- Paths (derived from project root) ---
ROOT = _ROOT
# Serverless hosts only give us a writable temp dir, so production state lives there.
TMP_ROOT = Path(os.getenv("TMP_DIR") or tempfile.gettempdir())

# --- Server ---
NODE_ENV = os.getenv("NODE_ENV", "development").strip().lower()
IS_PRODUCTION = NODE_ENV == "production"
PORT = int(os.getenv("PORT") or "3000")
HOST = os.getenv("HOST", "https://api.thontrangliennhat.com").rstrip("/")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

# --- Content store ---
_default_db = TMP_ROOT / "database.json" if IS_PRODUCTION else ROOT / "database.json"
DATABASE_PATH = Path(os.getenv("DATABASE_PATH") or _default_db)
# Extra copies of database.json written best-effort on every save (os.pathsep separated).
DATABASE_MIRRORS = _split_paths(os.getenv("DATABASE_MIRRORS", ""))
# If true, every mutation also starts scripts/sync_database.py in the background. Default false.
SYNC_AFTER_WRITE = _env_flag("SYNC_AFTER_WRITE", "false")

# --- Uploads ---
_default_uploads = TMP_ROOT / "uploads" if IS_PRODUCTION else ROOT / "images" / "uploads"
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR") or _default_uploads)
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))


def image_search_dirs(root: Path, uploads_dir: Path, tmp_root: Optional[Path] = None) -> List[Path]:
    """Ordered directories probed by the static asset resolver (duplicates dropped, order kept)."""
    tmp_root = tmp_root if tmp_root is not None else TMP_ROOT
    candidates = [
        uploads_dir,
        root / "images" / "uploads",
        root / "uploads",
        root / "public" / "images" / "uploads",
        root / "images",
        root / "public" / "images",
        root / "public" / "uploads",
        tmp_root / "uploads",
    ]
    seen = set()
    out: List[Path] = []
    for d in candidates:
        key = str(d)
        if key not in seen:
            seen.add(key)
            out.append(d)
    return out


@dataclass
class Settings:
    """Everything create_app() needs; built from the environment by default, or by hand in tests."""

    root: Path
    database_path: Path
    uploads_dir: Path
    database_mirrors: List[Path] = field(default_factory=list)
    image_dirs: List[Path] = field(default_factory=list)
    public_base_url: str = ""
    max_upload_bytes: int = 10 * 1024 * 1024
    sync_after_write: bool = False
    is_production: bool = False
    port: int = PORT

    def __post_init__(self) -> None:
        if not self.image_dirs:
            self.image_dirs = image_search_dirs(self.root, self.uploads_dir)
        if not self.public_base_url:
            self.public_base_url = HOST if self.is_production else f"http://localhost:{self.port}"


def load_settings() -> Settings:
    return Settings(
        root=ROOT,
        database_path=DATABASE_PATH,
        uploads_dir=UPLOADS_DIR,
        database_mirrors=list(DATABASE_MIRRORS),
        max_upload_bytes=MAX_UPLOAD_BYTES,
        sync_after_write=SYNC_AFTER_WRITE,
        is_production=IS_PRODUCTION,
        port=PORT,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a named stderr logger; handlers are attached once."""
    log = logging.getLogger(name)
    if log.handlers:
        return log
    log.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    sh = logging.StreamHandler()
    sh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    log.addHandler(sh)
    return log


# --- Debug: list of all exported names (for print_env_for_debug) ---
_ENV_MANAGER_VARS = [
    "ROOT", "TMP_ROOT", "NODE_ENV", "IS_PRODUCTION", "PORT", "HOST", "LOG_LEVEL",
    "DATABASE_PATH", "DATABASE_MIRRORS", "SYNC_AFTER_WRITE",
    "UPLOADS_DIR", "MAX_UPLOAD_BYTES",
]


def print_env_for_debug() -> None:
    """Print all env_manager variables for debugging."""
    import sys
    mod = sys.modules.get("env_manager") or sys.modules.get("__main__")
    if mod is None:
        return
    for name in _ENV_MANAGER_VARS:
        print(f"  {name}={getattr(mod, name, None)!r}")
    print("  ---")
    print(f"  .env.local path: {_ENV_LOCAL_PATH}")
    print(f"  .env.local exists: {_ENV_LOCAL_PATH.is_file()}")
    print(f"  image search dirs: {[str(d) for d in image_search_dirs(ROOT, UPLOADS_DIR)]}")


if __name__ == "__main__":
    print("env_manager variables:")
    print_env_for_debug()
