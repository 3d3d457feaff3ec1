"""Field-selective encryption and authentication for structured documents."""

from .canonical import stable_decode, stable_encode
from .keys import (
    KeyPair,
    derive_keys,
    validate_keys,
    keygen,
    register_key,
    generate_secret,
)
from .cipher import encrypt_fields, decrypt_fields
from .signing import (
    compute_signature,
    verify_signature,
    AUTHENTICATION_FIELD,
    CIPHERTEXT_FIELD,
    ID_FIELD,
)
from .fields import FieldSelection, FieldTreatment
from .document import Document
from .config import EngineOptions, load_options_from_env
from .engine import TransformEngine, configure
from .aio import AsyncTransformEngine
from .migration import MigrationReport, migrate_all, sign_all
from .errors import (
    DocSealError,
    ConfigurationError,
    KeyMaterialError,
    InvalidKeyLength,
    InvalidKeyEncoding,
    NoKeyAvailable,
    UnsupportedVersion,
    DecryptionError,
    AuthenticationFailed,
    NonSerializableField,
    AlreadyEncrypted,
    MissingIdentity,
)

__all__ = [
    "stable_encode",
    "stable_decode",
    "KeyPair",
    "derive_keys",
    "validate_keys",
    "keygen",
    "register_key",
    "generate_secret",
    "encrypt_fields",
    "decrypt_fields",
    "compute_signature",
    "verify_signature",
    "AUTHENTICATION_FIELD",
    "CIPHERTEXT_FIELD",
    "ID_FIELD",
    "FieldSelection",
    "FieldTreatment",
    "Document",
    "EngineOptions",
    "load_options_from_env",
    "TransformEngine",
    "configure",
    "AsyncTransformEngine",
    "MigrationReport",
    "migrate_all",
    "sign_all",
    "DocSealError",
    "ConfigurationError",
    "KeyMaterialError",
    "InvalidKeyLength",
    "InvalidKeyEncoding",
    "NoKeyAvailable",
    "UnsupportedVersion",
    "DecryptionError",
    "AuthenticationFailed",
    "NonSerializableField",
    "AlreadyEncrypted",
    "MissingIdentity",
]
