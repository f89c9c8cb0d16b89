"""
Document Codec

Turns an account collection into the bytes stored on disk and back.

Plain stores hold pretty-printed JSON. Encrypted stores hold
``hex(iv) + ":" + hex(ciphertext)`` where the ciphertext is the same JSON
encrypted with AES-256-CBC (PKCS#7 padding) under the store key. The key is
the 32-character hex string from the key file, used as 32 raw ASCII bytes.

There is no integrity tag: a wrong key or corrupted file shows up as a
DecodeError (bad padding, undecodable text or invalid JSON), never as a
distinct cryptographic failure.

The canonical collection is a dict mapping account id to account. Older
files stored a JSON array of accounts; decode() converts those on read.
"""
import json
import logging
import os
from typing import Any, Dict, Optional, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from accountvault.core.accounts.errors import DecodeError, InvalidKeyError
from accountvault.core.accounts.keys import validate_key

logger = logging.getLogger(__name__)

IV_SIZE = 16
SEPARATOR = ":"
JSON_INDENT = 4

Collection = Dict[str, Dict[str, Any]]


def _cipher_key(key: str) -> bytes:
    if not isinstance(key, str):
        raise InvalidKeyError("Store key must be a string")
    return validate_key(key).encode('ascii')


def encrypt_bytes(plaintext: bytes, key: str) -> bytes:
    """Encrypt plaintext under key with a fresh random IV."""
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_cipher_key(key)), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}{SEPARATOR}{ciphertext.hex()}".encode('ascii')


def decrypt_bytes(data: Union[bytes, str], key: str) -> bytes:
    """
    Inverse of encrypt_bytes.

    Raises:
        DecodeError: Missing separator, bad hex, wrong IV size, truncated
            ciphertext or bad padding (the usual symptom of a wrong key)
    """
    cipher_key = _cipher_key(key)
    try:
        text = data.decode('ascii') if isinstance(data, bytes) else data
    except UnicodeDecodeError:
        raise DecodeError("Encrypted account data is not ASCII") from None

    iv_hex, sep, body_hex = text.strip().partition(SEPARATOR)
    if not sep:
        raise DecodeError("Encrypted account data has no IV separator")

    try:
        iv = bytes.fromhex(iv_hex)
        ciphertext = bytes.fromhex(body_hex)
    except ValueError as e:
        raise DecodeError(f"Encrypted account data is not valid hex: {e}") from e
    if len(iv) != IV_SIZE:
        raise DecodeError(f"Invalid IV length: {len(iv)} bytes (expected {IV_SIZE})")

    try:
        decryptor = Cipher(algorithms.AES(cipher_key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        # Wrong key and truncated ciphertext both end up here
        raise DecodeError(f"Failed to decrypt account data: {e}") from e


def normalize_collection(data: Any) -> Collection:
    """
    Validate a parsed document and return it as an id-keyed mapping.

    Accepts the canonical mapping and the legacy array layout (which may
    contain null holes left by deletions).

    Raises:
        DecodeError: Wrong top-level type, non-object accounts, missing or
            duplicate ids
    """
    if isinstance(data, dict):
        collection: Collection = {}
        for account_id, account in data.items():
            if not isinstance(account, dict):
                raise DecodeError(f"Account {account_id} is not a JSON object")
            if account.get('id', account_id) != account_id:
                raise DecodeError(f"Account stored under {account_id} carries id {account['id']}")
            collection[account_id] = {**account, 'id': account_id}
        return collection

    if isinstance(data, list):
        logger.warning("Converting legacy array account collection to id mapping")
        collection = {}
        for account in data:
            if account is None:
                continue
            if not isinstance(account, dict):
                raise DecodeError("Legacy account entry is not a JSON object")
            account_id = account.get('id')
            if not account_id or not isinstance(account_id, str):
                raise DecodeError("Legacy account entry has no id")
            if account_id in collection:
                raise DecodeError(f"Duplicate account id {account_id}")
            collection[account_id] = account
        return collection

    raise DecodeError(f"Account document must be an object, got {type(data).__name__}")


def encode(collection: Collection, key: Optional[str] = None) -> bytes:
    """
    Serialize a collection, encrypting it when a key is given.

    Args:
        collection: Mapping of account id to account
        key: Store key, or None for plaintext

    Returns:
        Bytes ready to be written to the account file
    """
    try:
        serialized = json.dumps(collection, indent=JSON_INDENT, ensure_ascii=False).encode('utf-8')
    except (TypeError, ValueError) as e:
        logger.error(f"Account collection is not JSON-serializable: {e}")
        raise ValueError(f"Cannot store non-JSON-serializable account data: {e}") from e

    if key is None:
        return serialized
    return encrypt_bytes(serialized, key)


def decode(data: Union[bytes, str], key: Optional[str] = None) -> Collection:
    """
    Parse account file content, decrypting it first when a key is given.

    Raises:
        DecodeError: Decryption or JSON parsing failed
    """
    plaintext = decrypt_bytes(data, key) if key is not None else data
    try:
        parsed = json.loads(plaintext)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Account data is not valid JSON: {e}") from e
    return normalize_collection(parsed)
