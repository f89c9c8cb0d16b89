"""
Tests for the python -m accountvault command line.
"""
import json

import pytest

from accountvault.__main__ import main
from accountvault.core.accounts import codec
from accountvault.core.accounts.keys import generate_key, validate_key
from accountvault.core.accounts.store import AccountStore


@pytest.fixture
def populated_store(tmp_path):
    store = AccountStore(name="cli", main_directory=tmp_path / "cli", encrypt=True)
    store.add_account({"username": "ada"})
    store.add_account({"username": "grace"})
    return store


def run(*args):
    return main(list(args))


class TestCli:

    def test_no_command_prints_help(self, capsys):
        assert run() == 0
        assert "usage:" in capsys.readouterr().out

    def test_generate_key(self, capsys):
        assert run("--generate-key") == 0
        key = capsys.readouterr().out.strip()
        assert validate_key(key) == key

    def test_check_status(self, populated_store, capsys):
        assert run("--store", "cli", "--dir", str(populated_store.main_directory), "--check-status") == 0
        out = capsys.readouterr().out
        assert "STORE STATUS: cli" in out
        assert "Encrypted: True" in out
        assert "Accounts: 2" in out

    def test_verify_passes(self, populated_store, capsys):
        assert run("--store", "cli", "--dir", str(populated_store.main_directory), "--verify") == 0
        assert "VERIFICATION PASSED: 2 account(s)" in capsys.readouterr().out

    def test_verify_missing_store_creates_nothing(self, tmp_path, capsys):
        directory = tmp_path / "nowhere"
        assert run("--store", "ghost", "--dir", str(directory), "--verify") == 1
        assert "no account file" in capsys.readouterr().err
        assert not directory.exists()

    def test_verify_fails_on_wrong_key(self, populated_store, capsys):
        populated_store.key_file.write_text(generate_key())
        assert run("--store", "cli", "--dir", str(populated_store.main_directory), "--verify") == 1
        assert "DecodeError" in capsys.readouterr().err

    def test_rotate_key(self, populated_store):
        before = populated_store.get_accounts()
        old_key = populated_store.key_file.read_text()

        assert run("--store", "cli", "--dir", str(populated_store.main_directory), "--rotate-key") == 0

        new_key = populated_store.key_file.read_text()
        assert new_key != old_key
        assert codec.decode(populated_store.account_file.read_bytes(), new_key) == before

    def test_list_plain_store(self, tmp_path, capsys):
        store = AccountStore(name="plain", main_directory=tmp_path / "p", encrypt=False)
        account_id = store.add_account({"u": "a"})

        assert run("--store", "plain", "--dir", str(tmp_path / "p"), "--no-encrypt", "--list") == 0
        assert json.loads(capsys.readouterr().out) == [{"u": "a", "id": account_id}]

    def test_rotate_plain_store_fails(self, tmp_path, capsys):
        assert run("--store", "plain", "--dir", str(tmp_path / "p"), "--no-encrypt", "--rotate-key") == 1
        assert "not encrypted" in capsys.readouterr().err

    def test_invalid_store_name(self, capsys):
        assert run("--store", "a/b", "--dir", "somewhere", "--verify") == 1
        assert capsys.readouterr().err

    def test_default_store_from_settings(self, tmp_path, capsys):
        assert run("--check-status") == 0
        out = capsys.readouterr().out
        assert "STORE STATUS: Main" in out
        assert str((tmp_path / "home").resolve()) in out
