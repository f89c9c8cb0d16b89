"""
Shared fixtures for account store tests.

Every test gets a fresh settings singleton and store manager, with
ACCOUNTVAULT_HOME and CONFIG_DIR pointing into its own tmp_path.
"""
import pytest

from accountvault.core import config as config_module
from accountvault.core.accounts import manager as manager_module
from accountvault.core.accounts.store import AccountStore


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point settings and config lookup at tmp_path."""
    for var in ("ACCOUNTVAULT_HOME", "ACCOUNTVAULT_DEFAULT_STORE", "ACCOUNTVAULT_ENCRYPT", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("ACCOUNTVAULT_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.chdir(tmp_path)

    config_module.reload_settings()
    monkeypatch.setattr(manager_module, "_manager", None)
    yield
    config_module.reload_settings()


@pytest.fixture
def store_dir(tmp_path):
    """Directory for store files."""
    return tmp_path / "Accounts"


@pytest.fixture
def plain_store(store_dir):
    """Plaintext store named t1."""
    return AccountStore(name="t1", main_directory=store_dir, encrypt=False)


@pytest.fixture
def encrypted_store(store_dir):
    """Encrypted store named secure."""
    return AccountStore(name="secure", main_directory=store_dir, encrypt=True)


@pytest.fixture
def sample_accounts():
    """Account payloads used across store tests"""
    return [
        {"username": "ada", "role": "admin", "age": 36, "active": True},
        {"username": "grace", "role": "user", "age": "45", "active": 1},
        {"username": "linus", "role": "admin", "age": 28, "active": False},
        {"username": "ken", "role": "guest"},
    ]
