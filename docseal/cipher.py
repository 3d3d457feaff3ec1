"""
Field-set encryption: versioned AES-256-CBC envelope.

- Envelope = VERSION (1) || IV (16) || AES-256-CBC(PKCS#7(stable_encode(fields))).
- Fresh random IV per call via get_random_bytes; identical input never yields identical output.
- Integrity is provided by the document signature (see signing.py), not by the cipher mode.
- Every failure after the version check is reported as the same DecryptionError.
"""

from typing import Any, Dict

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

from .canonical import stable_decode, stable_encode
from .errors import DecryptionError, UnsupportedVersion
from .keys import ENCRYPTION_KEY_SIZE

VERSION = b"a"
VERSION_SIZE = len(VERSION)
IV_SIZE = 16
BLOCK_SIZE = AES.block_size


def encrypt_fields(fields: Dict[str, Any], key: bytes) -> bytes:
    """
    Encrypt a field-name -> value mapping with AES-256-CBC.
    Raises NonSerializableField if any value cannot be canonically encoded.
    """
    if len(key) != ENCRYPTION_KEY_SIZE:
        raise ValueError("Encryption key must be 32 bytes")
    plaintext = stable_encode(fields)
    iv = get_random_bytes(IV_SIZE)
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    ciphertext = cipher.encrypt(pad(plaintext, BLOCK_SIZE))
    return VERSION + iv + ciphertext


def read_version(envelope: bytes) -> bytes:
    """Return the version marker; raise UnsupportedVersion if unknown."""
    marker = bytes(envelope[:VERSION_SIZE])
    if marker != VERSION:
        raise UnsupportedVersion("Unsupported envelope version")
    return marker


def decrypt_fields(envelope: bytes, key: bytes) -> Dict[str, Any]:
    """Decrypt an envelope back into the original field mapping."""
    if len(key) != ENCRYPTION_KEY_SIZE:
        raise ValueError("Encryption key must be 32 bytes")
    envelope = bytes(envelope)
    read_version(envelope)
    body = envelope[VERSION_SIZE:]
    if len(body) < IV_SIZE + BLOCK_SIZE or (len(body) - IV_SIZE) % BLOCK_SIZE:
        raise DecryptionError()
    iv, ciphertext = body[:IV_SIZE], body[IV_SIZE:]
    try:
        cipher = AES.new(key, AES.MODE_CBC, iv=iv)
        fields = stable_decode(unpad(cipher.decrypt(ciphertext), BLOCK_SIZE))
    except (ValueError, TypeError):
        raise DecryptionError() from None
    if not isinstance(fields, dict):
        raise DecryptionError()
    return fields
