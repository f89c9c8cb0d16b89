"""
Store configuration and on-disk naming.

A store is identified by its name and the directory it lives in; both
file names are derived from the name.
"""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, field_validator

from accountvault.core.paths import default_main_directory

ACCOUNT_FILE_PREFIX = "Accounts"
KEY_FILE_PREFIX = "key"
ENCRYPTED_EXTENSION = "zenexacc"
PLAIN_EXTENSION = "json"


def gen_name_file(prefix: str, name: str, extension: Optional[str] = None) -> str:
    """Build '{prefix}-{name}[.{extension}]'."""
    filename = f"{prefix}-{name}"
    if extension:
        filename += f".{extension}"
    return filename


class StoreConfig(BaseModel):
    """Single account store configuration"""
    name: str = "Main"
    main_directory: Optional[Path] = None  # Resolved from settings when None
    encrypt: bool = True

    @field_validator('name')
    @classmethod
    def check_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Store name must not be empty')
        if '/' in v or '\\' in v or v in ('.', '..'):
            raise ValueError(f'Invalid store name: {v!r}')
        return v

    @property
    def account_filename(self) -> str:
        extension = ENCRYPTED_EXTENSION if self.encrypt else PLAIN_EXTENSION
        return gen_name_file(ACCOUNT_FILE_PREFIX, self.name, extension)

    @property
    def key_filename(self) -> str:
        return gen_name_file(KEY_FILE_PREFIX, self.name)

    def resolve_directory(self) -> Path:
        """Absolute store directory, falling back to the configured default."""
        return Path(self.main_directory or default_main_directory()).resolve()

    def resolve_account_file(self) -> Path:
        return self.resolve_directory() / self.account_filename
