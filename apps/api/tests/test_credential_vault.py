import json

import pytest

from exceptions import ConfigError, DecryptionError
from services import crypto

OTHER_KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


def _flip_hex(value: str) -> str:
    first = value[0]
    return ("1" if first != "1" else "2") + value[1:]


def test_round_trip_preserves_plaintext():
    vault = crypto.get_vault()
    for plaintext in ["", "ghp_token_123", "ünïcødé 🔐", "x" * 5000]:
        assert vault.decrypt(vault.encrypt(plaintext)) == plaintext


def test_each_encryption_uses_a_fresh_iv():
    vault = crypto.get_vault()
    first = vault.encrypt("same-secret")
    second = vault.encrypt("same-secret")

    assert first["iv"] != second["iv"]
    assert first["ciphertext"] != second["ciphertext"]
    assert len(bytes.fromhex(first["iv"])) == crypto.IV_LENGTH
    assert len(bytes.fromhex(first["authTag"])) == crypto.AUTH_TAG_LENGTH


def test_module_helpers_use_json_records():
    stored = crypto.encrypt_token("oauth-access-token")
    record = json.loads(stored)

    assert set(record) == {"ciphertext", "iv", "authTag"}
    assert crypto.decrypt_token(stored) == "oauth-access-token"
    assert crypto.decrypt_token(record) == "oauth-access-token"


@pytest.mark.parametrize("field", ["ciphertext", "iv", "authTag"])
def test_tampered_record_is_rejected(field):
    vault = crypto.get_vault()
    record = vault.encrypt("secret-value")
    record[field] = _flip_hex(record[field])

    with pytest.raises(DecryptionError):
        vault.decrypt(record)


def test_wrong_key_is_rejected():
    record = crypto.get_vault().encrypt("secret-value")

    with pytest.raises(DecryptionError) as exc_info:
        crypto.CredentialVault(OTHER_KEY).decrypt(record)
    assert "authentication tag mismatch" in exc_info.value.message


@pytest.mark.parametrize(
    "record",
    [
        "not json",
        "[1, 2, 3]",
        {"iv": "00" * 16, "authTag": "00" * 16},
        {"ciphertext": "zz", "iv": "00" * 16, "authTag": "00" * 16},
        {"ciphertext": "abcd", "iv": "00" * 12, "authTag": "00" * 16},
        {"ciphertext": "abcd", "iv": "00" * 16, "authTag": "00" * 8},
    ],
)
def test_malformed_record_is_rejected(record):
    with pytest.raises(DecryptionError):
        crypto.get_vault().decrypt(record)


@pytest.mark.parametrize("key", [None, "", "abc123", "g" * 64, "0" * 63])
def test_invalid_keys_fail_fast(key):
    with pytest.raises(ConfigError):
        crypto.CredentialVault(key)


def test_startup_round_trip_check_passes_with_configured_key():
    assert crypto.test_round_trip() is True


def test_generated_key_is_usable():
    key = crypto.generate_encryption_key()

    assert len(key) == 64
    vault = crypto.CredentialVault(key, key_version=2)
    record = vault.encrypt("rotated")
    assert record["version"] == 2
    assert vault.decrypt(json.dumps(record)) == "rotated"
