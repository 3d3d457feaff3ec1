"""Engine options and loading them from the environment."""

import os
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .errors import ConfigurationError
from .fields import FieldSelection, FieldTreatment
from .keys import KeyPair, derive_keys, validate_keys

ENV_PREFIX = "DOCSEAL_"
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# Fixed once configured; everything else may change between operations
IMMUTABLE_OPTIONS = frozenset({"secret", "encryption_key", "signing_key", "collection_identity", "fallback_keys"})


class KeySource(BaseModel):
    """Either a secret (keys are derived) or a base64 encryption/signing key pair."""

    model_config = ConfigDict(extra="forbid")

    secret: Optional[str] = None
    encryption_key: Optional[str] = None
    signing_key: Optional[str] = None

    @model_validator(mode="after")
    def check_secret_xor_keys(self):
        has_pair = self.encryption_key is not None or self.signing_key is not None
        if self.secret is not None and has_pair:
            raise ValueError("Provide either secret or encryption_key/signing_key, not both")
        if self.secret is None and (self.encryption_key is None or self.signing_key is None):
            raise ValueError("Provide secret, or both encryption_key and signing_key")
        return self

    def key_pair(self) -> KeyPair:
        """Raw keys; raises InvalidKeyLength / InvalidKeyEncoding for a bad pair."""
        if self.secret is not None:
            return derive_keys(self.secret)
        return validate_keys(self.encryption_key, self.signing_key)


class EngineOptions(KeySource):
    collection_identity: Optional[str] = None
    fields: Dict[str, FieldTreatment] = {}
    encrypted_fields: List[str] = []
    additional_authenticated_fields: List[str] = []
    exclude_from_encryption: List[str] = []
    require_authentication_code: bool = True
    decrypt_after_encrypt: bool = True
    per_document_keys: bool = False
    discard_key_after_decrypt: bool = False
    fallback_keys: List[KeySource] = []

    def field_selection(self) -> FieldSelection:
        return FieldSelection.resolve(
            fields=self.fields,
            encrypted_fields=self.encrypted_fields,
            additional_authenticated_fields=self.additional_authenticated_fields,
            exclude_from_encryption=self.exclude_from_encryption,
        )


def build_options(**options) -> EngineOptions:
    """Validate raw options; errors never echo the (possibly secret) input values."""
    try:
        return EngineOptions(**options)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid options: {problems}") from None


def _env(name: str) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_list(name: str) -> List[str]:
    raw = _env(name)
    if raw is None:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def load_options_from_env(env_file: Optional[str] = None, **overrides) -> EngineOptions:
    """
    Read DOCSEAL_* variables (after loading env_file or a discovered .env).
    Keyword overrides win over the environment.
    """
    load_dotenv(env_file)
    options = {
        "secret": _env("SECRET"),
        "encryption_key": _env("ENCRYPTION_KEY"),
        "signing_key": _env("SIGNING_KEY"),
        "collection_identity": _env("COLLECTION_IDENTITY"),
        "encrypted_fields": _env_list("ENCRYPTED_FIELDS"),
        "additional_authenticated_fields": _env_list("AUTHENTICATED_FIELDS"),
    }
    for flag in ("require_authentication_code", "decrypt_after_encrypt", "per_document_keys"):
        raw = _env(flag.upper())
        if raw is not None:
            options[flag] = raw.lower() in _TRUE_VALUES
    options.update(overrides)
    return build_options(**options)
