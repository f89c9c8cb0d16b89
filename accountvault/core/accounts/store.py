"""
Account Store - file-backed account records

Persists one collection of accounts per store as a single JSON document,
optionally encrypted under the store key. Every operation reloads the whole
file, applies its change in memory and writes the whole file back.

Concurrency:
- Within a process, each store serializes its operations on an RLock.
  Use StoreManager to share one instance (and lock) per store.
- Across processes, writes are checked optimistically: if the account file
  changed since it was read, the write is dropped and ConcurrencyLossError
  is raised. The check and the rename run under fileio.commit_lock, and
  every write stages into its own temp file.

Usage:
    store = AccountStore(name="users", main_directory="/var/lib/app/accounts")
    account_id = store.add_account({"username": "ada", "role": "admin"})
    admins = store.get_many_from_object({"role": "admin"})
    store.modify_account(account_id, {"role": "owner"})
"""
import logging
import secrets
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from accountvault.core.accounts import codec, fileio
from accountvault.core.accounts.codec import Collection
from accountvault.core.accounts.errors import (
    AccountNotFoundError,
    AccountStoreError,
    ConcurrencyLossError,
    DecodeError,
)
from accountvault.core.accounts.keys import KeyManager
from accountvault.core.accounts.matching import matches
from accountvault.core.accounts.models import StoreConfig

logger = logging.getLogger(__name__)

ID_BYTES = 16

Account = Dict[str, Any]


class AccountStore:
    """
    CRUD and query surface over one store's account file.

    Construction creates the directory, an empty account file and (for
    encrypted stores) the key file when they are missing, and finishes any
    interrupted key rotation.
    """

    def __init__(self, config: Optional[StoreConfig] = None, **options):
        """
        Initialize account store.

        Args:
            config: Store configuration
            **options: StoreConfig fields (name, main_directory, encrypt),
                used when config is not given
        """
        if config is not None and options:
            raise TypeError("Pass either a StoreConfig or keyword options, not both")
        self.config = config if config is not None else StoreConfig(**options)
        self.name = self.config.name
        self.encrypt = self.config.encrypt
        self.main_directory = self.config.resolve_directory()
        self.account_file = self.main_directory / self.config.account_filename

        self.keys: Optional[KeyManager] = KeyManager(self.main_directory, self.name) if self.encrypt else None
        self._lock = threading.RLock()
        self._stamp: Optional[fileio.FileStamp] = None

        self._init()

    def __repr__(self) -> str:
        return f"AccountStore(name={self.name!r}, main_directory={str(self.main_directory)!r}, encrypt={self.encrypt})"

    @property
    def key_file(self) -> Optional[Path]:
        return self.keys.key_path if self.keys else None

    # ------------------------------------------------------------------
    # File cycle
    # ------------------------------------------------------------------

    def _init(self) -> None:
        with self._lock:
            fileio.ensure_directory(self.main_directory)

            if self.keys is not None:
                if self.account_file.exists():
                    self.keys.recover(self._can_decode)
                elif self.keys.pending_path.exists():
                    logger.warning(f"Discarding pending key for store '{self.name}' with no account file")
                    fileio.discard(self.keys.pending_path)
                self.keys.get_key()

            if not self.account_file.exists():
                self._stamp = None
                try:
                    self._save({})
                except ConcurrencyLossError:
                    logger.debug(f"Account file for store '{self.name}' was created concurrently")
                else:
                    logger.info(f"Created account file {self.account_file}")

            logger.info(f"Account store '{self.name}' ready at {self.main_directory} (encrypt={self.encrypt})")

    def _key(self) -> Optional[str]:
        return self.keys.get_key() if self.keys is not None else None

    def _can_decode(self, key: str) -> bool:
        try:
            codec.decode(fileio.read_bytes(self.account_file), key)
        except DecodeError:
            return False
        return True

    def _load(self) -> Collection:
        """Read and decode the account file, remembering which version was read."""
        data, stamp = fileio.read_with_stamp(self.account_file)
        try:
            accounts = codec.decode(data, self._key())
        except DecodeError as e:
            logger.error(f"Failed to decode account file {self.account_file}: {e}")
            raise
        self._stamp = stamp
        return accounts

    def _check_unchanged(self) -> None:
        if fileio.stamp(self.account_file) != self._stamp:
            logger.error(f"Account file {self.account_file} changed since it was read")
            raise ConcurrencyLossError(self.account_file)

    def _stage(self, accounts: Collection, key: Optional[str]) -> Path:
        return fileio.write_temp(self.account_file, codec.encode(accounts, key))

    def _save(self, accounts: Collection) -> None:
        """Encode and write the collection unless the file changed since _load."""
        temp = self._stage(accounts, self._key())
        try:
            with fileio.commit_lock(self.account_file):
                self._check_unchanged()
                fileio.replace(temp, self.account_file)
                self._stamp = fileio.stamp(self.account_file)
        except AccountStoreError:
            fileio.discard(temp)
            raise

    def _new_id(self, accounts: Collection) -> str:
        account_id = secrets.token_hex(ID_BYTES)
        while account_id in accounts:
            account_id = secrets.token_hex(ID_BYTES)
        return account_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_accounts(self) -> Collection:
        """Whole collection as stored: account id -> account."""
        with self._lock:
            return self._load()

    def list_accounts(self) -> List[Account]:
        """Accounts in collection order."""
        return list(self.get_accounts().values())

    def count(self) -> int:
        return len(self.get_accounts())

    def get_account(self, account_id: str) -> Optional[Account]:
        """Account with this id, or None."""
        return self.get_accounts().get(account_id)

    def get_from_object(self, predicate: Mapping[str, Any]) -> Optional[Account]:
        """
        First account whose fields loosely equal every field of predicate.

        Args:
            predicate: Field values to match, e.g. {"username": "ada"}

        Returns:
            Matching account or None
        """
        for account in self.get_accounts().values():
            if matches(account, predicate):
                return account
        return None

    def get_many_from_object(self, predicate: Mapping[str, Any]) -> List[Account]:
        """All accounts matching predicate, in collection order."""
        return [account for account in self.get_accounts().values() if matches(account, predicate)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_account(self, fields: Mapping[str, Any]) -> str:
        """
        Store a new account.

        Args:
            fields: Account fields; any 'id' is replaced by a generated one

        Returns:
            The new account id (32 hex characters)
        """
        with self._lock:
            accounts = self._load()
            account_id = self._new_id(accounts)
            account = dict(fields)
            account['id'] = account_id
            accounts[account_id] = account
            self._save(accounts)
            logger.debug(f"Added account {account_id} to store '{self.name}'")
            return account_id

    def modify_account(self, account_id: str, patch: Mapping[str, Any]) -> None:
        """
        Overwrite fields of an existing account (no deep merge).

        The 'id' field cannot be changed and is ignored in patch.

        Raises:
            AccountNotFoundError: No account with this id
        """
        changes = {key: value for key, value in patch.items() if key != 'id'}
        with self._lock:
            accounts = self._load()
            if account_id not in accounts:
                logger.error(f"Cannot modify missing account {account_id} in store '{self.name}'")
                raise AccountNotFoundError(account_id, self.name)
            accounts[account_id].update(changes)
            self._save(accounts)
            logger.debug(f"Modified account {account_id} in store '{self.name}' ({len(changes)} fields)")

    def remove_account(self, account_id: str, missing_ok: bool = False) -> None:
        """
        Delete an account permanently.

        Args:
            account_id: Account to delete
            missing_ok: Return quietly instead of raising when the id is unknown

        Raises:
            AccountNotFoundError: No account with this id and missing_ok is False
        """
        with self._lock:
            accounts = self._load()
            if account_id not in accounts:
                if missing_ok:
                    return
                logger.error(f"Cannot remove missing account {account_id} from store '{self.name}'")
                raise AccountNotFoundError(account_id, self.name)
            del accounts[account_id]
            self._save(accounts)
            logger.debug(f"Removed account {account_id} from store '{self.name}'")

    def run_for_accounts(
        self,
        accounts: Iterable[Mapping[str, Any]],
        func: Callable[[Mapping[str, Any]], Optional[Mapping[str, Any]]],
    ) -> int:
        """
        Call func for each account and apply what it returns.

        A truthy return value is merged into that account like modify_account
        does. All changes are written together in one save; if any account
        is no longer in the store nothing is written.

        Example:
            store.run_for_accounts(
                store.get_many_from_object({"username": "test"}),
                lambda account: {"username": "test2"},
            )

        Returns:
            Number of accounts modified

        Raises:
            AccountNotFoundError: An account with changes was removed from the store
        """
        with self._lock:
            updates = []
            for account in accounts:
                changes = func(account)
                if changes:
                    updates.append((account['id'], changes))
            if not updates:
                return 0

            stored = self._load()
            for account_id, changes in updates:
                if account_id not in stored:
                    logger.error(f"Cannot modify missing account {account_id} in store '{self.name}'")
                    raise AccountNotFoundError(account_id, self.name)
                stored[account_id].update({key: value for key, value in changes.items() if key != 'id'})
            self._save(stored)
            logger.debug(f"Modified {len(updates)} accounts in store '{self.name}'")
        return len(updates)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def rotate_key(self) -> None:
        """
        Replace the store key and re-encrypt all accounts under it.

        Raises:
            AccountStoreError: Store is not encrypted
            DecodeError: Current data does not decode under the current key
            ConcurrencyLossError: Account file changed during rotation
        """
        if self.keys is None:
            raise AccountStoreError(f"Store '{self.name}' is not encrypted; it has no key to rotate")

        def stage(old_key: str, new_key: str) -> Tuple[Path, Path]:
            data, stamp = fileio.read_with_stamp(self.account_file)
            accounts = codec.decode(data, old_key)
            self._stamp = stamp
            return self._stage(accounts, new_key), self.account_file

        with self._lock, fileio.commit_lock(self.account_file):
            self.keys.rotate_key(stage, precommit=self._check_unchanged)
            self._stamp = fileio.stamp(self.account_file)

    gen_key = rotate_key
