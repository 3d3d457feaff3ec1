"""
Document authentication codes (HMAC-SHA-512).

- Code = VERSION (1) || HMAC-SHA-512 digest (64) || JSON array of signed field names.
- Signed payload binds: version, collection identity, sorted field names, and the
  canonical encoding of each listed field's current value (ciphertext included).
- Each payload component is length-prefixed so boundaries cannot be shifted.
- Verification uses the field list recorded in the code, not the current configuration,
  so documents signed under an older field set still verify against their own contract.
- Digest comparison is constant-time; verification fails closed.
"""

import json
from collections.abc import Mapping
from typing import Iterable, List, Optional

from Crypto.Hash import HMAC, SHA512

from .canonical import stable_encode
from .errors import MissingIdentity, NonSerializableField
from .keys import SIGNING_KEY_SIZE, constant_time_equals

VERSION = b"a"
VERSION_SIZE = len(VERSION)
DIGEST_SIZE = SHA512.digest_size

ID_FIELD = "_id"
CIPHERTEXT_FIELD = "_ct"
AUTHENTICATION_FIELD = "_ac"


def signed_field_names(authenticated_fields: Iterable[str]) -> List[str]:
    """Sorted field list with the implicit _id and ciphertext fields added."""
    return sorted(set(authenticated_fields) | {ID_FIELD, CIPHERTEXT_FIELD})


def _encode_names(names: List[str]) -> bytes:
    return json.dumps(names, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _digest(
    document: Mapping,
    names: List[str],
    collection_identity: str,
    signing_key: bytes,
    version: bytes = VERSION,
) -> bytes:
    values = {name: document[name] for name in names if name in document}
    h = HMAC.new(signing_key, digestmod=SHA512)
    for part in (version, collection_identity.encode("utf-8"), _encode_names(names), stable_encode(values)):
        h.update(len(part).to_bytes(8, "big"))
        h.update(part)
    return h.digest()


def compute_signature(
    document: Mapping,
    authenticated_fields: Iterable[str],
    collection_identity: str,
    signing_key: bytes,
) -> bytes:
    """
    Sign the document's current ciphertext and authenticated cleartext fields.
    Returns the versioned authentication code for the AUTHENTICATION_FIELD.
    """
    if len(signing_key) != SIGNING_KEY_SIZE:
        raise ValueError("Signing key must be 64 bytes")
    if document.get(ID_FIELD) is None or document.get(CIPHERTEXT_FIELD) is None:
        raise MissingIdentity("Document needs _id and a ciphertext envelope before signing")
    names = signed_field_names(authenticated_fields)
    digest = _digest(document, names, collection_identity, signing_key)
    return VERSION + digest + _encode_names(names)


def read_authenticated_fields(code: bytes) -> Optional[List[str]]:
    """Field names recorded in an authentication code, or None if the code is malformed."""
    if not isinstance(code, (bytes, bytearray, memoryview)):
        return None
    code = bytes(code)
    if len(code) <= VERSION_SIZE + DIGEST_SIZE or code[:VERSION_SIZE] != VERSION:
        return None
    try:
        names = json.loads(code[VERSION_SIZE + DIGEST_SIZE:].decode("utf-8"))
    except ValueError:
        return None
    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        return None
    return names


def verify_signature(
    document: Mapping,
    code: Optional[bytes],
    collection_identity: str,
    signing_key: bytes,
) -> bool:
    """Recompute the digest over the recorded field list; True only on an exact match."""
    names = read_authenticated_fields(code) if code is not None else None
    if names is None:
        return False
    # identity binding is mandatory: both must be recorded and present
    for required in (ID_FIELD, CIPHERTEXT_FIELD):
        if required not in names or document.get(required) is None:
            return False
    stored = bytes(code)[VERSION_SIZE:VERSION_SIZE + DIGEST_SIZE]
    try:
        expected = _digest(document, names, collection_identity, signing_key)
    except NonSerializableField:
        return False
    return constant_time_equals(expected, stored)
