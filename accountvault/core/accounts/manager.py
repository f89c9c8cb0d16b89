"""
Store Manager - named store registry

Loads store definitions from stores.yaml and hands out one shared
AccountStore per (directory, name), so every caller in the process goes
through the same per-store lock.

stores.yaml:
    stores:
      users:
        main_directory: /var/lib/app/accounts
        encrypt: true
      sessions:
        encrypt: false
    settings:
      default_store: users
"""
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from accountvault.core.accounts.models import StoreConfig
from accountvault.core.accounts.store import AccountStore
from accountvault.core.config import get_settings
from accountvault.core.paths import get_config_path

logger = logging.getLogger(__name__)


class StoreManager:
    """
    Manages the account stores of an application.

    Usage:
        manager = StoreManager()
        users = manager.get_store('users')
        users.add_account({'username': 'ada'})
    """

    def __init__(self, config_path: str = None):
        """
        Initialize store manager.

        Args:
            config_path: Path to stores.yaml. If None, uses
                get_config_path() to resolve; a missing file means every
                store is built from defaults.
        """
        if config_path is None:
            self.config_path = get_config_path("stores.yaml")
        else:
            self.config_path = Path(config_path)

        settings = get_settings()
        self.default_store: str = settings.default_store
        self.encrypt_by_default: bool = settings.encrypt_by_default
        self.configs: Dict[str, StoreConfig] = {}

        self._stores: Dict[Tuple[Path, str], AccountStore] = {}
        self._lock = threading.Lock()

        self._load_config()

    def _load_config(self):
        """Load store configurations from YAML file"""
        if self.config_path is None or not self.config_path.exists():
            logger.info("No stores.yaml found, stores will use defaults")
            return

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load store config from {self.config_path}: {e}")
            raise

        if not config:
            logger.warning(f"Empty store config {self.config_path}, using defaults")
            return

        for name, store_config in (config.get('stores') or {}).items():
            store_config = store_config or {}
            try:
                self.configs[name] = StoreConfig(
                    name=name,
                    main_directory=store_config.get('main_directory'),
                    encrypt=store_config.get('encrypt', self.encrypt_by_default),
                )
            except (ValidationError, AttributeError) as e:
                logger.error(f"Failed to load store '{name}': {e}")
                continue
            logger.info(f"Loaded store configuration: {name} (encrypt={self.configs[name].encrypt})")

        settings = config.get('settings') or {}
        self.default_store = settings.get('default_store', self.default_store)
        logger.info(f"Loaded {len(self.configs)} store(s), default: {self.default_store}")

    def list_stores(self) -> List[str]:
        """Names of configured stores"""
        return list(self.configs.keys())

    def get_config(self, name: Optional[str] = None) -> StoreConfig:
        """Configuration for a store, built from defaults when not configured"""
        name = name or self.default_store
        if name in self.configs:
            return self.configs[name]
        return StoreConfig(name=name, encrypt=self.encrypt_by_default)

    def get_store(self, name: Optional[str] = None) -> AccountStore:
        """
        Shared store instance for name (default store if None).

        Instances are cached per resolved directory and name.
        """
        config = self.get_config(name)
        directory = config.resolve_directory()
        cache_key = (directory, config.name)
        with self._lock:
            store = self._stores.get(cache_key)
            if store is None:
                store = AccountStore(config.model_copy(update={'main_directory': directory}))
                self._stores[cache_key] = store
            return store


# Global manager instance (created on first use)
_manager: Optional[StoreManager] = None


def get_store_manager() -> StoreManager:
    """Get the process-wide store manager (singleton)."""
    global _manager
    if _manager is None:
        _manager = StoreManager()
    return _manager


def get_store(name: Optional[str] = None) -> AccountStore:
    """Shortcut for get_store_manager().get_store(name)."""
    return get_store_manager().get_store(name)
