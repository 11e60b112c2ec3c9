"""
Credential vault: AES-256-GCM encryption of third-party tokens at rest.

Every record carries its own random 16-byte IV and the 16-byte GCM
authentication tag, hex-encoded and serialized as JSON::

    {"ciphertext": "...", "iv": "...", "authTag": "...", "version": 1}

Tampering with any field, or decrypting with a different key, fails tag
verification and raises ``DecryptionError``.
"""

import json
import os
import re
import secrets
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from config import settings
from exceptions import ConfigError, DecryptionError


IV_LENGTH = 16
AUTH_TAG_LENGTH = 16
KEY_LENGTH = 32
KEY_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")

EncryptedRecord = Dict[str, Any]


def load_encryption_key(key_hex: Optional[str]) -> bytes:
    """
    Decode the process-wide vault key.

    Args:
        key_hex: 64 hexadecimal characters (32 bytes)

    Raises:
        ConfigError: If the key is missing, has the wrong length or is not hex
    """
    if not key_hex:
        raise ConfigError(
            "ENCRYPTION_KEY",
            "not set. Generate one with services.crypto.generate_encryption_key().",
        )
    if len(key_hex) != KEY_LENGTH * 2:
        raise ConfigError(
            "ENCRYPTION_KEY",
            f"must be exactly 64 hex characters (32 bytes). Got {len(key_hex)} characters.",
        )
    if not KEY_HEX_PATTERN.match(key_hex):
        raise ConfigError("ENCRYPTION_KEY", "must contain only hexadecimal characters (0-9, a-f).")
    return bytes.fromhex(key_hex)


def _decode_hex(record: Mapping[str, Any], field: str) -> bytes:
    value = record.get(field)
    if not isinstance(value, str):
        raise DecryptionError(f"invalid encrypted data: missing required field '{field}'")
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise DecryptionError(f"invalid encrypted data: '{field}' is not hex") from exc


class CredentialVault:
    """Authenticated symmetric encryption bound to one 256-bit key."""

    def __init__(self, key_hex: Optional[str], key_version: Optional[int] = None):
        self._aesgcm = AESGCM(load_encryption_key(key_hex))
        self.key_version = key_version

    def encrypt(self, plaintext: str) -> EncryptedRecord:
        """Encrypt plaintext under a fresh IV and return the hex-encoded record."""
        if not isinstance(plaintext, str):
            raise TypeError("plaintext must be a string")

        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]

        record: EncryptedRecord = {
            "ciphertext": ciphertext.hex(),
            "iv": iv.hex(),
            "authTag": auth_tag.hex(),
        }
        if self.key_version is not None:
            record["version"] = self.key_version
        return record

    def decrypt(self, record: Union[str, Mapping[str, Any]]) -> str:
        """
        Verify and decrypt an encrypted record.

        Args:
            record: The record dict or its JSON serialization

        Returns:
            The original plaintext

        Raises:
            DecryptionError: If the record is malformed, was tampered with
                or was encrypted under another key
        """
        if isinstance(record, (str, bytes)):
            try:
                record = json.loads(record)
            except ValueError as exc:
                raise DecryptionError(f"failed to parse encrypted data as JSON: {exc}") from exc
        if not isinstance(record, Mapping):
            raise DecryptionError("invalid encrypted data: expected an object")

        ciphertext = _decode_hex(record, "ciphertext")
        iv = _decode_hex(record, "iv")
        auth_tag = _decode_hex(record, "authTag")
        if len(iv) != IV_LENGTH:
            raise DecryptionError(f"invalid encrypted data: iv must be {IV_LENGTH} bytes")
        if len(auth_tag) != AUTH_TAG_LENGTH:
            raise DecryptionError(f"invalid encrypted data: authTag must be {AUTH_TAG_LENGTH} bytes")

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + auth_tag, None)
        except InvalidTag as exc:
            raise DecryptionError(
                "authentication tag mismatch. Data may have been tampered with or the encryption key is incorrect."
            ) from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("decrypted data is not valid UTF-8") from exc

    def test_round_trip(self) -> bool:
        """Encrypt and decrypt a fresh random value; True when it survives unchanged."""
        sample = f"vault-check-{secrets.token_hex(16)}"
        try:
            return self.decrypt(self.encrypt(sample)) == sample
        except DecryptionError:
            return False


@lru_cache(maxsize=4)
def _vault_for_key(key_hex: str) -> CredentialVault:
    return CredentialVault(key_hex)


def get_vault() -> CredentialVault:
    """Return the vault bound to the configured ENCRYPTION_KEY."""
    return _vault_for_key(settings.ENCRYPTION_KEY or "")


def encrypt_token(token: str) -> str:
    """
    Encrypt a token for secure storage.

    Args:
        token: Plain text token

    Returns:
        JSON-serialized encrypted record
    """
    return json.dumps(get_vault().encrypt(token))


def decrypt_token(encrypted_token: Union[str, Mapping[str, Any]]) -> str:
    """
    Decrypt an encrypted token.

    Args:
        encrypted_token: JSON-serialized record (or the record dict)

    Returns:
        Plain text token
    """
    return get_vault().decrypt(encrypted_token)


def test_round_trip() -> bool:
    """Validate the configured key at startup. Never raises."""
    try:
        return get_vault().test_round_trip()
    except ConfigError:
        return False


def generate_encryption_key() -> str:
    """Generate a new random 64-hex-character key for the .env file."""
    return secrets.token_bytes(KEY_LENGTH).hex()
