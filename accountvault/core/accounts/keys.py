"""
Store Key Management

Each encrypted store has one key file, ``key-{name}``, holding 16 random
bytes as 32 hex characters. The key is created on first use and replaced
on rotation.

KEY ROTATION:
1. Load the current key and generate a new one
2. Stage the collection re-encrypted under the new key in a temp file
3. Write the new key to ``key-{name}.pending``
4. Rename the staged collection over the account file
5. Rename the pending key over the key file

A crash between steps 4 and 5 leaves the account file encrypted under the
pending key. recover() detects that on the next start and promotes the
pending key; a crash before step 4 leaves the old pair intact and the
pending key is discarded.
"""
import logging
import re
import secrets
from pathlib import Path
from typing import Callable, Optional, Tuple

from accountvault.core.accounts import fileio
from accountvault.core.accounts.errors import DecodeError, InvalidKeyError
from accountvault.core.accounts.models import KEY_FILE_PREFIX, gen_name_file

logger = logging.getLogger(__name__)

KEY_BYTES = 16
PENDING_SUFFIX = ".pending"
_HEX_RE = re.compile(r"[0-9a-fA-F]+")

# (old_key, new_key) -> (staged temp file, account file it replaces)
StageCallback = Callable[[str, str], Tuple[Path, Path]]


def generate_key() -> str:
    """
    Generate a new store key.

    Returns:
        32-character lowercase hex string
    """
    return secrets.token_hex(KEY_BYTES)


def validate_key(key: str) -> str:
    """Return key if it is a well-formed store key, else raise InvalidKeyError."""
    if len(key) != KEY_BYTES * 2:
        raise InvalidKeyError(f"Invalid key length: {len(key)} characters (expected {KEY_BYTES * 2})")
    if not _HEX_RE.fullmatch(key):
        raise InvalidKeyError("Key is not a hex string")
    return key


class KeyManager:
    """
    Owns the key file of one store.

    Usage:
        keys = KeyManager(Path("/data/accounts"), "Main")
        key = keys.get_key()
    """

    def __init__(self, directory: Path, name: str):
        self.directory = Path(directory)
        self.name = name
        self.key_path = self.directory / gen_name_file(KEY_FILE_PREFIX, name)
        self.pending_path = self.key_path.with_name(self.key_path.name + PENDING_SUFFIX)

    def exists(self) -> bool:
        return self.key_path.exists()

    def get_key(self) -> str:
        """
        Current key, generating and persisting one if none exists.

        Raises:
            StoreIOError: Key file cannot be read or written
            InvalidKeyError: Key file content is malformed
        """
        if not self.exists():
            return self._create_key()
        return self._read_key(self.key_path)

    def _read_key(self, path: Path) -> str:
        raw = fileio.read_bytes(path)
        try:
            key = raw.decode('ascii').strip()
        except UnicodeDecodeError:
            logger.error(f"Key file {path} is not ASCII")
            raise InvalidKeyError(f"Key file {path} is not ASCII") from None
        try:
            return validate_key(key)
        except InvalidKeyError as e:
            logger.error(f"Key file {path} is malformed: {e}")
            raise

    def _create_key(self) -> str:
        key = generate_key()
        fileio.atomic_write(self.key_path, key.encode('ascii'))
        logger.info(f"Generated new key for store '{self.name}'")
        return key

    def rotate_key(
        self,
        stage: Optional[StageCallback] = None,
        precommit: Optional[Callable[[], None]] = None,
    ) -> str:
        """
        Replace the key, re-encrypting stored data through stage.

        Without an existing key (or without stage, i.e. nothing to
        re-encrypt) this is plain key generation.

        Args:
            stage: Callback that writes the collection re-encrypted under
                new_key to a temp file and returns (temp_path, account_path)
            precommit: Called after both temp files are written and before
                anything is renamed; raising aborts the rotation

        Returns:
            The new key
        """
        if stage is None or not self.exists():
            return self._create_key()

        old_key = self._read_key(self.key_path)
        new_key = generate_key()

        staged, target = stage(old_key, new_key)
        try:
            fileio.atomic_write(self.pending_path, new_key.encode('ascii'))
        except Exception:
            fileio.discard(staged)
            raise

        try:
            if precommit is not None:
                precommit()
            fileio.replace(staged, target)
        except Exception:
            fileio.discard(staged)
            fileio.discard(self.pending_path)
            raise
        fileio.replace(self.pending_path, self.key_path)
        logger.info(f"Rotated key for store '{self.name}'")
        return new_key

    def recover(self, can_decode: Callable[[str], bool]) -> Optional[str]:
        """
        Finish or roll back an interrupted rotation.

        Args:
            can_decode: Returns True if the account file decodes under a key

        Returns:
            The key now in effect, or None if there was nothing to recover

        Raises:
            DecodeError: Neither the current nor the pending key opens the
                account file
        """
        if not self.pending_path.exists():
            return None

        if self.exists():
            current = self._read_key(self.key_path)
            if can_decode(current):
                logger.warning(f"Discarding unfinished key rotation for store '{self.name}'")
                fileio.discard(self.pending_path)
                return current

        pending = self._read_key(self.pending_path)
        if can_decode(pending):
            logger.warning(f"Completing interrupted key rotation for store '{self.name}'")
            fileio.replace(self.pending_path, self.key_path)
            return pending

        logger.error(f"Neither current nor pending key opens store '{self.name}'")
        raise DecodeError(
            f"Store '{self.name}' cannot be decrypted with the current or pending key; "
            f"{self.pending_path} was left in place"
        )
