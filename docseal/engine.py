"""
Document transform engine: encrypt, decrypt, sign, authenticate.

- encrypt: move the selected fields into a versioned AES-256-CBC envelope (_ct).
- sign: HMAC-SHA-512 over _id, _ct and authenticated cleartext fields (_ac).
- save_transform = sign(encrypt(doc)); load_transform = decrypt(doc) after authenticate(doc).
- Keys: process-wide pair from configuration; per-document keys (keygen/register_key)
  replace the encryption key for one document. Fallback pairs are tried on read only.
- Every operation mutates one document in place; callers serialize access per document.
"""

from typing import Any, Dict, List, Union

import structlog

from .cipher import decrypt_fields, encrypt_fields, read_version
from .config import IMMUTABLE_OPTIONS, EngineOptions, build_options
from .document import Document
from .errors import (
    AlreadyEncrypted,
    AuthenticationFailed,
    ConfigurationError,
    DecryptionError,
    DocSealError,
    NoKeyAvailable,
)
from .fields import FieldSelection
from .keys import document_encryption_key, keygen, register_key
from .signing import (
    AUTHENTICATION_FIELD,
    CIPHERTEXT_FIELD,
    compute_signature,
    verify_signature,
)

logger = structlog.get_logger(__name__)


class TransformEngine:
    """Applies the configured field protection to Document instances."""

    def __init__(self, options: EngineOptions):
        self._options = options
        self._keys = options.key_pair()
        self._fallback_keys = [source.key_pair() for source in options.fallback_keys]
        self._selection = options.field_selection()

    @property
    def options(self) -> EngineOptions:
        return self._options

    @property
    def selection(self) -> FieldSelection:
        return self._selection

    def set_option(self, name: str, value: Any) -> None:
        """Change a mutable option; takes effect on the next operation."""
        if name in IMMUTABLE_OPTIONS:
            raise ConfigurationError(f"Option {name!r} cannot change after configuration")
        updated = build_options(**{**self._options.model_dump(), name: value})
        self._selection = updated.field_selection()
        self._options = updated

    # ------------------------------------------------------------------
    # Key material
    # ------------------------------------------------------------------

    def keygen(self, secret: Union[str, bytes]) -> str:
        """Deterministic per-document key for secret under the process signing key."""
        return keygen(secret, self._keys.signing_key)

    def register_key(self, document: Document, encoded_key: str) -> None:
        register_key(document, encoded_key)

    def _encryption_keys(self, document: Document) -> List[bytes]:
        """Candidate encryption keys for document, current key first."""
        if document.document_key is not None:
            return [document_encryption_key(document.document_key)]
        if self._options.per_document_keys:
            raise NoKeyAvailable("No per-document key registered")
        return [self._keys.encryption_key] + [pair.encryption_key for pair in self._fallback_keys]

    def _signing_keys(self) -> List[bytes]:
        return [self._keys.signing_key] + [pair.signing_key for pair in self._fallback_keys]

    def collection_identity(self, document: Document) -> str:
        identity = self._options.collection_identity or document.collection
        if not identity:
            raise ConfigurationError("Document has no collection identity and none is configured")
        return identity

    # ------------------------------------------------------------------
    # Single operations
    # ------------------------------------------------------------------

    def encrypt(self, document: Document) -> Document:
        """
        Replace the selected cleartext fields with a ciphertext envelope.
        Raises AlreadyEncrypted if the envelope is already present, since the
        cleartext fields are gone and re-encrypting would lose them.
        """
        if CIPHERTEXT_FIELD in document:
            raise AlreadyEncrypted("Document already carries a ciphertext envelope")
        key = self._encryption_keys(document)[0]
        names = self._selection.encrypted_for(document)
        envelope = encrypt_fields({name: document[name] for name in names}, key)
        for name in names:
            del document[name]
        document[CIPHERTEXT_FIELD] = envelope
        logger.debug("document_encrypted", document_id=str(document.id), field_count=len(names))
        return document

    def decrypt(self, document: Document) -> Document:
        """Restore encrypted fields as cleartext. No-op when there is no envelope."""
        envelope = document.get(CIPHERTEXT_FIELD)
        if envelope is None:
            return document
        if not isinstance(envelope, (bytes, bytearray, memoryview)):
            raise DecryptionError()
        keys = self._encryption_keys(document)
        read_version(envelope)
        fields = None
        for key in keys:
            try:
                fields = decrypt_fields(envelope, key)
                break
            except DecryptionError:
                continue
        if fields is None:
            logger.warning("document_decryption_failed", document_id=str(document.id))
            raise DecryptionError()
        del document[CIPHERTEXT_FIELD]
        document.update(fields)
        if self._options.discard_key_after_decrypt:
            document.clear_document_key()
        logger.debug("document_decrypted", document_id=str(document.id), field_count=len(fields))
        return document

    def sign(self, document: Document) -> Document:
        """Recompute and overwrite the authentication code."""
        document[AUTHENTICATION_FIELD] = compute_signature(
            document,
            self._selection.authenticated,
            self.collection_identity(document),
            self._keys.signing_key,
        )
        return document

    def is_authentic(self, document: Document) -> bool:
        code = document.get(AUTHENTICATION_FIELD)
        if code is None:
            return not self._options.require_authentication_code
        identity = self.collection_identity(document)
        return any(verify_signature(document, code, identity, key) for key in self._signing_keys())

    def authenticate(self, document: Document) -> bool:
        """Verify the authentication code; raise AuthenticationFailed otherwise. Never mutates."""
        if self.is_authentic(document):
            return True
        reason = "missing" if AUTHENTICATION_FIELD not in document else "mismatch"
        logger.warning("document_authentication_failed", document_id=str(document.id), reason=reason)
        if reason == "missing":
            raise AuthenticationFailed("Authentication code missing")
        raise AuthenticationFailed("Authentication code does not match document")

    # ------------------------------------------------------------------
    # Composite transforms
    # ------------------------------------------------------------------

    def encrypt_and_sign(self, document: Document) -> Document:
        """
        Encrypt then sign as one step. If either fails the document's fields
        are restored, so it is never left encrypted without a signature.
        """
        snapshot = document.to_dict()
        try:
            self.encrypt(document)
            self.sign(document)
        except DocSealError:
            document.clear()
            document.update(snapshot)
            raise
        return document

    def save_transform(self, document: Document) -> Dict[str, Any]:
        """
        Encrypt then sign; return the fields to persist.
        With decrypt_after_encrypt the in-memory document is left decrypted.
        """
        self.encrypt_and_sign(document)
        persisted = document.to_dict()
        if self._options.decrypt_after_encrypt:
            self.decrypt(document)
        return persisted

    def load_transform(self, document: Document) -> Document:
        """Authenticate before trusting the ciphertext, then decrypt."""
        self.authenticate(document)
        return self.decrypt(document)


def configure(**options) -> TransformEngine:
    """Validate options and key material; raises ConfigurationError subclasses."""
    engine = TransformEngine(build_options(**options))
    logger.info(
        "engine_configured",
        collection_identity=engine.options.collection_identity,
        encrypted_fields=sorted(engine.selection.encrypted) or "all",
        authenticated_fields=sorted(engine.selection.authenticated),
        per_document_keys=engine.options.per_document_keys,
    )
    return engine
