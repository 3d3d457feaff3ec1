"""
Field classification: which fields are encrypted, which are authenticated in cleartext.

- Declarative map name -> FieldTreatment, resolved once into explicit sets.
- _id and the ciphertext field are always authenticated (added at signing time).
- With no explicitly encrypted field, every other field is encrypted by default.
"""

from collections.abc import Mapping
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from .errors import ConfigurationError
from .signing import AUTHENTICATION_FIELD, CIPHERTEXT_FIELD, ID_FIELD

RESERVED_FIELDS = frozenset({ID_FIELD, CIPHERTEXT_FIELD, AUTHENTICATION_FIELD})


class FieldTreatment(str, Enum):
    ENCRYPTED = "encrypted"
    AUTHENTICATED = "authenticated"
    PLAIN = "plain"


class FieldSelection:
    """Resolved encrypted / authenticated / excluded field sets."""

    def __init__(
        self,
        encrypted: Iterable[str] = (),
        authenticated: Iterable[str] = (),
        excluded: Iterable[str] = (),
    ):
        self.encrypted: FrozenSet[str] = frozenset(encrypted)
        self.authenticated: FrozenSet[str] = frozenset(authenticated)
        self.excluded: FrozenSet[str] = frozenset(excluded)
        self._check()

    @classmethod
    def resolve(
        cls,
        fields: Optional[Mapping] = None,
        encrypted_fields: Iterable[str] = (),
        additional_authenticated_fields: Iterable[str] = (),
        exclude_from_encryption: Iterable[str] = (),
    ) -> "FieldSelection":
        """Merge the treatment map with the explicit field lists."""
        encrypted = set(encrypted_fields)
        authenticated = set(additional_authenticated_fields)
        excluded = set(exclude_from_encryption)
        for name, treatment in (fields or {}).items():
            treatment = FieldTreatment(treatment)
            if treatment is FieldTreatment.ENCRYPTED:
                encrypted.add(name)
            elif treatment is FieldTreatment.AUTHENTICATED:
                authenticated.add(name)
            else:
                excluded.add(name)
        return cls(encrypted, authenticated, excluded)

    def _check(self) -> None:
        for label, names in (
            ("encrypted", self.encrypted),
            ("authenticated", self.authenticated),
            ("excluded", self.excluded),
        ):
            reserved = names & RESERVED_FIELDS
            if reserved:
                raise ConfigurationError(f"Reserved field(s) {sorted(reserved)} cannot be {label}")
        overlap = self.encrypted & (self.authenticated | self.excluded)
        if overlap:
            raise ConfigurationError(f"Field(s) {sorted(overlap)} are both encrypted and kept in cleartext")

    @property
    def encrypts_all_by_default(self) -> bool:
        return not self.encrypted

    def encrypted_for(self, document: Mapping) -> List[str]:
        """Names of the fields on this document that encrypt() must protect."""
        if self.encrypted:
            return sorted(name for name in self.encrypted if name in document)
        skip = RESERVED_FIELDS | self.authenticated | self.excluded
        return sorted(name for name in document if name not in skip)
