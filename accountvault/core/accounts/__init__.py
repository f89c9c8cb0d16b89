"""
Account Store Module

Encrypted or plaintext JSON account records on local disk, one file per
named store, with per-store key management and rotation.
"""

from accountvault.core.accounts.errors import (
    AccountStoreError,
    AccountNotFoundError,
    StoreIOError,
    DecodeError,
    InvalidKeyError,
    ConcurrencyLossError,
)
from accountvault.core.accounts.models import StoreConfig
from accountvault.core.accounts.keys import KeyManager, generate_key
from accountvault.core.accounts.store import AccountStore
from accountvault.core.accounts.manager import StoreManager, get_store, get_store_manager

__all__ = [
    # Errors
    "AccountStoreError",
    "AccountNotFoundError",
    "StoreIOError",
    "DecodeError",
    "InvalidKeyError",
    "ConcurrencyLossError",
    # Stores
    "StoreConfig",
    "AccountStore",
    "StoreManager",
    "get_store",
    "get_store_manager",
    # Keys
    "KeyManager",
    "generate_key",
]
