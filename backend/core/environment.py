"""Environment loading for Battery Builds.

Values are read from, lowest to highest priority:
1. Variables set by the hosting platform
2. .env (shared defaults, committed)
3. .env.local (developer secrets, gitignored)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = ("", "your-api-key-here", "placeholder")
TRUTHY = ("true", "1", "yes", "on")
FALSY = ("false", "0", "no", "off")
DEFAULT_DATABASE_URL = "sqlite:///./battery_builds.db"


def load_environment(env_dir: Optional[Union[str, Path]] = None) -> List[str]:
    """Load .env then .env.local from env_dir (default: cwd).

    Returns:
        Names of the files that were found and loaded
    """
    base = Path.cwd() if env_dir is None else Path(env_dir)

    loaded = []
    for name in (".env", ".env.local"):
        path = base / name
        if not path.exists():
            continue
        load_dotenv(path, override=True)
        loaded.append(name)
        logger.debug(f"Loaded environment from {path}")

    if loaded:
        logger.info(f"Environment loaded from: {', '.join(loaded)}")
    return loaded


def get_env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    """Stripped value of key; blank counts as unset."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key, "").strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    return default


def _get_env_number(key: str, default, cast):
    raw = get_env_str(key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Invalid {cast.__name__} value for {key}, using default: {default}")
        return default


def get_env_int(key: str, default: int = 0) -> int:
    return _get_env_number(key, default, int)


def get_env_float(key: str, default: float = 0.0) -> float:
    return _get_env_number(key, default, float)


def get_env_list(key: str, separator: str = ",", default: Optional[list] = None) -> list:
    """Split a separated variable into stripped, non-empty items."""
    value = get_env_str(key)
    if value is None:
        return list(default or [])
    return [item.strip() for item in value.split(separator) if item.strip()]


def validate_required_env_vars(required_vars: List[str]) -> List[str]:
    """Names from required_vars that are unset, blank, or still a placeholder."""
    return [
        var for var in required_vars
        if (os.getenv(var) or "").strip() in PLACEHOLDER_VALUES
    ]


def get_database_url() -> str:
    url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    # Hosted Postgres providers still hand out the legacy scheme
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def is_production() -> bool:
    return os.getenv("ENV", "development").lower() == "production"


def is_development() -> bool:
    return not is_production()
