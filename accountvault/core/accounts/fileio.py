"""
File helpers for account and key files.

All writes go to a uniquely named sibling temp file that is fsynced and then
renamed over the target, so readers see either the old or the new content.
commit_lock() serializes the final check-and-rename step across processes.
"""
import fcntl
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Tuple

from accountvault.core.accounts.errors import StoreIOError

logger = logging.getLogger(__name__)

FILE_MODE = 0o600
TEMP_SUFFIX = ".tmp"
LOCK_SUFFIX = ".lock"


class FileStamp(NamedTuple):
    """Identity of one version of a file on disk."""
    mtime_ns: int
    size: int
    inode: int


def stamp(path: Path) -> Optional[FileStamp]:
    """Current stamp of path, or None if it does not exist."""
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.error(f"Failed to stat {path}: {e}")
        raise StoreIOError(f"Cannot stat {path}: {e}", path) from e
    return FileStamp(st.st_mtime_ns, st.st_size, st.st_ino)


def read_with_stamp(path: Path) -> Tuple[bytes, FileStamp]:
    """Read path and return its content with the stamp of the version read."""
    try:
        with open(path, 'rb') as f:
            st = os.fstat(f.fileno())
            data = f.read()
    except OSError as e:
        logger.error(f"Failed to read {path}: {e}")
        raise StoreIOError(f"Cannot read {path}: {e}", path) from e
    return data, FileStamp(st.st_mtime_ns, st.st_size, st.st_ino)


def read_bytes(path: Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        logger.error(f"Failed to read {path}: {e}")
        raise StoreIOError(f"Cannot read {path}: {e}", path) from e


def write_temp(path: Path, data: bytes) -> Path:
    """
    Write data to a new temp file next to path and flush it to disk.

    Each call gets its own file (``{name}.XXXX.tmp``), created with
    owner-only permissions, so concurrent writers never share staging.

    Returns:
        Path of the temp file (caller renames it into place)
    """
    path = Path(path)
    try:
        fd, name = tempfile.mkstemp(dir=path.parent, prefix=path.name + ".", suffix=TEMP_SUFFIX)
    except OSError as e:
        logger.error(f"Failed to create temp file for {path}: {e}")
        raise StoreIOError(f"Cannot write {path}: {e}", path) from e

    temp_path = Path(name)
    try:
        with os.fdopen(fd, 'wb') as f:
            os.fchmod(f.fileno(), FILE_MODE)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        logger.error(f"Failed to write {temp_path}: {e}")
        discard(temp_path)
        raise StoreIOError(f"Cannot write {temp_path}: {e}", temp_path) from e
    return temp_path


def replace(temp_path: Path, path: Path) -> None:
    """Rename temp_path over path."""
    try:
        os.replace(temp_path, path)
    except OSError as e:
        logger.error(f"Failed to move {temp_path} to {path}: {e}")
        raise StoreIOError(f"Cannot replace {path}: {e}", path) from e


def atomic_write(path: Path, data: bytes) -> None:
    """Write data to path via temp file + rename."""
    replace(write_temp(path, data), path)


def discard(path: Path) -> None:
    """Remove a leftover temp file; missing files are fine."""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")


def ensure_directory(directory: Path) -> None:
    try:
        Path(directory).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory {directory}: {e}")
        raise StoreIOError(f"Cannot create directory {directory}: {e}", directory) from e


@contextmanager
def commit_lock(path: Path) -> Iterator[None]:
    """
    Hold an exclusive lock on ``{path}.lock`` across processes.

    Writers take it around their "unchanged since read" check and the rename
    that follows, so no other writer can replace path in between.
    """
    lock_path = Path(path).with_name(Path(path).name + LOCK_SUFFIX)
    try:
        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, FILE_MODE)
    except OSError as e:
        logger.error(f"Failed to open lock file {lock_path}: {e}")
        raise StoreIOError(f"Cannot lock {path}: {e}", lock_path) from e
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError as e:
            logger.error(f"Failed to lock {lock_path}: {e}")
            raise StoreIOError(f"Cannot lock {path}: {e}", lock_path) from e
        yield
    finally:
        os.close(fd)
