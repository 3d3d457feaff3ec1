"""
Batch migration of existing documents.

- migrate_all: encrypt then sign every document; one failure never aborts the batch.
- sign_all: add authentication codes to documents that are encrypted but unsigned,
  before switching require_authentication_code on for a collection.
- Documents are updated in place; persisting them is the caller's job.
"""

from typing import Any, Callable, Iterable, List, NamedTuple, Optional, Tuple

import structlog

from .document import Document
from .engine import TransformEngine
from .errors import DocSealError
from .signing import AUTHENTICATION_FIELD, CIPHERTEXT_FIELD

logger = structlog.get_logger(__name__)


class MigrationReport(NamedTuple):
    migrated: int
    skipped: int
    failures: List[Tuple[Any, DocSealError]]

    @property
    def ok(self) -> bool:
        return not self.failures


def migrate_all(
    engine: TransformEngine,
    documents: Iterable[Document],
    key_for: Optional[Callable[[Document], Optional[str]]] = None,
) -> MigrationReport:
    """
    Encrypt and sign each document. Documents that are already encrypted and
    signed are skipped; encrypted but unsigned ones are signed.
    key_for(document) may return a base64 per-document key to register first.
    """
    migrated = 0
    skipped = 0
    failures: List[Tuple[Any, DocSealError]] = []
    for document in documents:
        if CIPHERTEXT_FIELD in document and AUTHENTICATION_FIELD in document:
            skipped += 1
            continue
        try:
            if CIPHERTEXT_FIELD in document:
                engine.sign(document)
            else:
                if key_for is not None:
                    encoded = key_for(document)
                    if encoded is not None:
                        engine.register_key(document, encoded)
                engine.encrypt_and_sign(document)
        except DocSealError as exc:
            logger.warning("document_migration_failed", document_id=str(document.id), error=type(exc).__name__)
            failures.append((document.id, exc))
            continue
        migrated += 1
    logger.info("migration_finished", migrated=migrated, skipped=skipped, failed=len(failures))
    return MigrationReport(migrated, skipped, failures)


def sign_all(engine: TransformEngine, documents: Iterable[Document]) -> MigrationReport:
    """Sign documents that have no authentication code yet."""
    signed = 0
    skipped = 0
    failures: List[Tuple[Any, DocSealError]] = []
    for document in documents:
        if AUTHENTICATION_FIELD in document:
            skipped += 1
            continue
        try:
            engine.sign(document)
        except DocSealError as exc:
            failures.append((document.id, exc))
            continue
        signed += 1
    logger.info("sign_all_finished", signed=signed, skipped=skipped, failed=len(failures))
    return MigrationReport(signed, skipped, failures)
