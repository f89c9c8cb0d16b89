"""
Account store key management and inspection.

Usage:
    python -m accountvault --generate-key
    python -m accountvault --store users --check-status
    python -m accountvault --store users --verify
    python -m accountvault --store users --rotate-key
    python -m accountvault --store sessions --no-encrypt --list
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from accountvault.core.accounts import (
    AccountStore,
    AccountStoreError,
    StoreConfig,
    generate_key,
    get_store_manager,
)
from accountvault.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="accountvault",
        description="Account store key management and inspection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
KEY ROTATION:
=============

1. CHECK the store opens with its current key:
   python -m accountvault --store NAME --verify

2. ROTATE (re-encrypts every account under a fresh key):
   python -m accountvault --store NAME --rotate-key

3. VERIFY again:
   python -m accountvault --store NAME --verify

Stop every process using the store before rotating; other processes
reading during the rotation may briefly fail to decode.
"""
    )
    parser.add_argument('--store', help='Store name (default: configured default store)')
    parser.add_argument('--dir', dest='directory', help='Store directory (overrides stores.yaml)')
    parser.add_argument('--no-encrypt', action='store_true', help='Open the store as plaintext')

    parser.add_argument('--generate-key', action='store_true', help='Print a new random store key')
    parser.add_argument('--rotate-key', action='store_true', help='Rotate the store key and re-encrypt')
    parser.add_argument('--check-status', action='store_true', help='Show store files and account count')
    parser.add_argument('--verify', action='store_true', help='Check the account file decodes')
    parser.add_argument('--list', action='store_true', help='Print all accounts as JSON')

    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('-q', '--quiet', action='store_true', help='Warnings and errors only')
    return parser


def store_config(args: argparse.Namespace) -> StoreConfig:
    """Configuration of the store selected by --store/--dir/--no-encrypt."""
    config = get_store_manager().get_config(args.store)
    overrides = {}
    if args.directory is not None:
        overrides['main_directory'] = args.directory
    if args.no_encrypt:
        overrides['encrypt'] = False
    if not overrides:
        return config
    return StoreConfig(**{**config.model_dump(), **overrides})


def open_store(args: argparse.Namespace) -> AccountStore:
    """Open the selected store, creating its files if missing."""
    if args.directory is None and not args.no_encrypt:
        return get_store_manager().get_store(args.store)
    return AccountStore(store_config(args))


def print_status(store: AccountStore) -> None:
    print("=" * 60)
    print(f"STORE STATUS: {store.name}")
    print("=" * 60)
    print(f"Directory: {store.main_directory}")
    print(f"Account file: {store.account_file}")
    print(f"Encrypted: {store.encrypt}")
    if store.key_file is not None:
        print(f"Key file: {store.key_file} (exists: {store.key_file.exists()})")
    print(f"Accounts: {store.count()}")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.quiet:
        setup_logging(logging.WARNING)
    elif args.verbose:
        setup_logging(logging.DEBUG)
    else:
        setup_logging()

    if args.generate_key:
        print(generate_key())
        return 0

    if not (args.rotate_key or args.check_status or args.verify or args.list):
        parser.print_help()
        return 0

    try:
        if args.verify:
            account_file = store_config(args).resolve_account_file()
            if not account_file.exists():
                print(f"❌ VERIFICATION FAILED: no account file at {account_file}", file=sys.stderr)
                return 1

        store = open_store(args)

        if args.check_status:
            print_status(store)

        if args.verify:
            count = store.count()
            print(f"✅ VERIFICATION PASSED: {count} account(s) decoded from {store.account_file}")

        if args.rotate_key:
            store.rotate_key()
            print(f"✅ Key rotated for store '{store.name}' ({store.count()} account(s) re-encrypted)")

        if args.list:
            print(json.dumps(store.list_accounts(), indent=4, ensure_ascii=False))

    except (AccountStoreError, ValueError) as e:
        logger.debug("Store command failed", exc_info=True)
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
