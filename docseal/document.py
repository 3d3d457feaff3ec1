"""
In-memory document: field mapping + collection identity + ephemeral key slot.

The per-document key is an attribute, not a mapping entry, so to_dict() and
iteration never expose it; it is not persisted.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, Iterator, Optional

from .signing import ID_FIELD


class Document(MutableMapping):
    """Mapping of field name -> value, owned by the caller and rewritten in place."""

    def __init__(
        self,
        fields: Optional[Dict[str, Any]] = None,
        collection: Optional[str] = None,
        document_key: Optional[bytes] = None,
    ):
        self._fields: Dict[str, Any] = dict(fields or {})
        self.collection = collection
        self.document_key = document_key

    @property
    def id(self) -> Any:
        return self._fields.get(ID_FIELD)

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self._fields[name] = value

    def __delitem__(self, name: str) -> None:
        del self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        # Field values may be sensitive; show names only
        return f"Document(collection={self.collection!r}, fields={sorted(self._fields)!r})"

    def has_document_key(self) -> bool:
        return self.document_key is not None

    def clear_document_key(self) -> None:
        self.document_key = None

    def to_dict(self) -> Dict[str, Any]:
        """Shallow copy of the persisted fields (no key material)."""
        return dict(self._fields)
