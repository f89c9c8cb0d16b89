"""
Centralized path configuration for accountvault.

Supports:
- Store directory: ACCOUNTVAULT_HOME, falling back to ./Accounts
- Local config: ./config/*.yaml
- External overlay: CONFIG_DIR=/path/to/private/config
- Fallback to .example.yaml when .yaml missing

Usage:
    from accountvault.core.paths import get_config_path, default_main_directory

    stores_path = get_config_path("stores.yaml")
    directory = default_main_directory()
"""
import os
import logging
from pathlib import Path
from typing import Optional

from accountvault.core.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIRNAME = "Accounts"
_DEFAULT_CONFIG_DIR = Path("config")


def config_dir() -> Path:
    """Config directory, honouring the CONFIG_DIR environment variable."""
    return Path(os.getenv("CONFIG_DIR", str(_DEFAULT_CONFIG_DIR)))


def default_main_directory() -> Path:
    """
    Resolve the directory stores live in when none is configured.

    Resolution order:
    1. ACCOUNTVAULT_HOME setting
    2. ./Accounts relative to the working directory

    Returns:
        Absolute path (not created here)
    """
    home = get_settings().accountvault_home
    if home:
        return Path(home).expanduser().resolve()
    return (Path.cwd() / DEFAULT_STORE_DIRNAME).resolve()


def get_config_path(filename: str, required: bool = False) -> Optional[Path]:
    """
    Resolve config file path with fallback logic.

    Resolution order:
    1. CONFIG_DIR / filename
    2. CONFIG_DIR / filename.example.yaml (if .yaml)

    Args:
        filename: Config filename (e.g., "stores.yaml")
        required: If True, raise FileNotFoundError when not found

    Returns:
        Path to config file, or None if not found and not required

    Raises:
        FileNotFoundError: If required=True and file not found
    """
    base = config_dir()
    candidates = [base / filename]
    if filename.endswith('.yaml'):
        candidates.append(base / filename.replace('.yaml', '.example.yaml'))

    for path in candidates:
        if path.exists():
            logger.debug(f"Config '{filename}' resolved to: {path}")
            return path

    if required:
        searched = [str(c) for c in candidates]
        raise FileNotFoundError(
            f"Required config file '{filename}' not found.\n"
            f"Searched: {searched}\n"
            f"Hint: Copy {filename.replace('.yaml', '.example.yaml')} to {filename} and customize it."
        )

    logger.debug(f"Config '{filename}' not found (optional)")
    return None
