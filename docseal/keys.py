"""
Key material for field encryption and document signing.

- HKDF (RFC 5869) over SHA-512 expands one secret into a 96-byte block:
  32-byte encryption key (AES-256) || 64-byte signing key (HMAC-SHA-512).
- Keys supplied directly are base64 strings, validated for encoding and length.
- Per-document keys: HMAC-SHA-512(signing_key, caller secret). Deterministic, so the
  caller can regenerate the key from its secret instead of storing it.
- Per-document keys live only on the in-memory Document; they are never persisted.
"""

import base64
import binascii
import hashlib
import hmac
import os
from typing import NamedTuple, Union

from .errors import ConfigurationError, InvalidKeyEncoding, InvalidKeyLength

ENCRYPTION_KEY_SIZE = 32
SIGNING_KEY_SIZE = 64
DOCUMENT_KEY_SIZE = 64
SECRET_SIZE = 32
HKDF_HASH = hashlib.sha512

# HKDF info label; changing it changes every derived key
INFO_KEYS = b"docseal.v1.keys"


class KeyPair(NamedTuple):
    """Encryption key (AES-256) and signing key (HMAC-SHA-512)."""
    encryption_key: bytes
    signing_key: bytes


def _to_bytes(secret: Union[str, bytes]) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


def _hkdf_extract(salt: bytes, ikm: bytes) -> bytes:
    """HKDF-Extract: PRK = HMAC-Hash(salt, IKM). Salt can be empty."""
    return hmac.new(salt, ikm, HKDF_HASH).digest()


def _hkdf_expand(prk: bytes, info: bytes, length: int) -> bytes:
    """HKDF-Expand: output length bytes from PRK and info."""
    digest_len = HKDF_HASH().digest_size
    n = (length + digest_len - 1) // digest_len
    if n > 255:
        raise ValueError("HKDF-Expand length too large")
    out = b""
    t = b""
    for i in range(1, n + 1):
        t = hmac.new(prk, t + info + bytes([i]), HKDF_HASH).digest()
        out += t
    return out[:length]


def derive_keys(secret: Union[str, bytes]) -> KeyPair:
    """
    One-way, deterministic expansion of secret into (encryption_key, signing_key).
    Same secret always yields the same pair.
    """
    ikm = _to_bytes(secret)
    if not ikm:
        raise ConfigurationError("Secret must not be empty")
    prk = _hkdf_extract(b"", ikm)
    block = _hkdf_expand(prk, INFO_KEYS, ENCRYPTION_KEY_SIZE + SIGNING_KEY_SIZE)
    return KeyPair(
        encryption_key=block[:ENCRYPTION_KEY_SIZE],
        signing_key=block[ENCRYPTION_KEY_SIZE:],
    )


def generate_secret() -> str:
    """New random secret (base64 of 32 bytes from os.urandom)."""
    return encode_key(os.urandom(SECRET_SIZE))


def encode_key(key: bytes) -> str:
    return base64.b64encode(key).decode("ascii")


def decode_key(encoded: str, expected_size: int, name: str = "key") -> bytes:
    """Decode a base64 key and check its length."""
    if not isinstance(encoded, (str, bytes)):
        raise InvalidKeyEncoding(f"{name} must be a base64 string")
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyEncoding(f"{name} is not valid base64") from exc
    if len(raw) != expected_size:
        raise InvalidKeyLength(f"{name} must be {expected_size} bytes, got {len(raw)}")
    return raw


def validate_keys(encryption_key: str, signing_key: str) -> KeyPair:
    """Validate a directly supplied base64 key pair; return the raw keys."""
    return KeyPair(
        encryption_key=decode_key(encryption_key, ENCRYPTION_KEY_SIZE, "encryption_key"),
        signing_key=decode_key(signing_key, SIGNING_KEY_SIZE, "signing_key"),
    )


def keygen(secret: Union[str, bytes], signing_key: bytes) -> str:
    """
    Per-document key from a caller secret (e.g. a password).
    HMAC-SHA-512(key=signing_key, message=secret), base64-encoded.
    """
    if len(signing_key) != SIGNING_KEY_SIZE:
        raise InvalidKeyLength(f"signing_key must be {SIGNING_KEY_SIZE} bytes")
    digest = hmac.new(signing_key, _to_bytes(secret), hashlib.sha512).digest()
    return encode_key(digest)


def register_key(document, encoded_key: str) -> None:
    """
    Install a per-document key on the document's ephemeral key slot.
    Not checked against the ciphertext; a wrong key fails later at decrypt time.
    """
    document.document_key = decode_key(encoded_key, DOCUMENT_KEY_SIZE, "document key")


def document_encryption_key(document_key: bytes) -> bytes:
    """Encryption key used for a document protected by a per-document key."""
    return derive_keys(document_key).encryption_key


def constant_time_equals(a: bytes, b: bytes) -> bool:
    """Constant-time comparison to prevent timing leaks on digest comparison."""
    return hmac.compare_digest(a, b)
