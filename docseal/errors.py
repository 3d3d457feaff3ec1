"""
Error taxonomy for the document transform engine.

- Configuration-time: ConfigurationError, InvalidKeyLength, InvalidKeyEncoding.
- Operation-time: NoKeyAvailable, UnsupportedVersion, DecryptionError,
  AuthenticationFailed, NonSerializableField, AlreadyEncrypted.
- All are recoverable by the caller; none are raised from library internals raw.
"""


class DocSealError(Exception):
    """Base class for every error raised by docseal."""


class ConfigurationError(DocSealError):
    """Invalid or immutable option, or an impossible field selection."""


class KeyMaterialError(ConfigurationError):
    """Key material failed validation."""


class InvalidKeyLength(KeyMaterialError):
    pass


class InvalidKeyEncoding(KeyMaterialError):
    pass


class NoKeyAvailable(DocSealError):
    """No registered or derivable key for the document."""


class UnsupportedVersion(DocSealError):
    """Envelope version marker is unknown."""


class DecryptionError(DocSealError):
    """
    Generic decryption failure.
    Padding, format and wrong-key failures all map here with the same message.
    """

    MESSAGE = "Decryption failed"

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


class AuthenticationFailed(DocSealError):
    """Authentication code missing, malformed, of unknown version, or mismatched."""


class NonSerializableField(DocSealError):
    """A field value cannot be canonically encoded."""


class AlreadyEncrypted(DocSealError):
    """encrypt() called on a document that already carries a ciphertext envelope."""


class MissingIdentity(DocSealError):
    """Document lacks _id or its ciphertext envelope, so it cannot be signed."""
