"""
Batch migration: encrypt+sign every document, skip encrypted ones, report
per-document failures without aborting, sign legacy encrypted documents.
"""

import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from docseal import (
    AUTHENTICATION_FIELD,
    CIPHERTEXT_FIELD,
    Document,
    NoKeyAvailable,
    NonSerializableField,
    configure,
    migrate_all,
    sign_all,
)

SECRET = "migration secret"


def _docs():
    return [
        Document({"_id": i, "name": f"user{i}", "age": 20 + i}, collection="users")
        for i in range(3)
    ]


def test_migrate_all_encrypts_and_signs():
    engine = configure(secret=SECRET, encrypted_fields=["name", "age"])
    docs = _docs()
    report = migrate_all(engine, docs)
    assert report.migrated == 3 and report.skipped == 0 and report.ok
    for doc in docs:
        assert CIPHERTEXT_FIELD in doc and AUTHENTICATION_FIELD in doc
        engine.load_transform(doc)
    assert docs[1]["name"] == "user1"


def test_migrate_all_reports_failures_and_continues():
    engine = configure(secret=SECRET, encrypted_fields=["name", "age"])
    docs = _docs()
    docs[1]["age"] = {1, 2}
    report = migrate_all(engine, docs)
    assert report.migrated == 2
    assert not report.ok
    assert len(report.failures) == 1
    failed_id, error = report.failures[0]
    assert failed_id == 1
    assert isinstance(error, NonSerializableField)
    assert CIPHERTEXT_FIELD in docs[2]


def test_migrate_all_skips_encrypted():
    engine = configure(secret=SECRET, encrypted_fields=["name"])
    docs = _docs()
    engine.encrypt_and_sign(docs[0])
    report = migrate_all(engine, docs)
    assert report.skipped == 1 and report.migrated == 2


def test_migrate_all_signs_encrypted_unsigned():
    engine = configure(secret=SECRET, encrypted_fields=["name"])
    docs = _docs()
    engine.encrypt(docs[0])
    envelope = docs[0][CIPHERTEXT_FIELD]
    report = migrate_all(engine, docs)
    assert report.migrated == 3 and report.skipped == 0
    assert docs[0][CIPHERTEXT_FIELD] == envelope
    engine.load_transform(docs[0])
    assert docs[0]["name"] == "user0"


def test_migrate_all_sign_failure_leaves_document_cleartext():
    engine = configure(secret=SECRET, encrypted_fields=["name"], additional_authenticated_fields=["tags"])
    doc = Document({"_id": 1, "name": "Joe", "tags": {"a", "b"}}, collection="users")
    report = migrate_all(engine, [doc])
    assert report.migrated == 0 and report.skipped == 0
    assert isinstance(report.failures[0][1], NonSerializableField)
    assert doc["name"] == "Joe"
    assert CIPHERTEXT_FIELD not in doc and AUTHENTICATION_FIELD not in doc

    doc["tags"] = ["a", "b"]
    report = migrate_all(engine, [doc])
    assert report.migrated == 1 and report.ok
    assert AUTHENTICATION_FIELD in doc
    engine.load_transform(doc)
    assert doc["name"] == "Joe"


def test_migrate_all_with_per_document_keys():
    engine = configure(secret=SECRET, encrypted_fields=["name"], per_document_keys=True)
    passwords = {0: "pw0", 1: None, 2: "pw2"}

    def key_for(doc):
        pw = passwords[doc.id]
        return engine.keygen(pw) if pw else None

    docs = _docs()
    report = migrate_all(engine, docs, key_for=key_for)
    assert report.migrated == 2
    assert isinstance(report.failures[0][1], NoKeyAvailable)

    reloaded = Document(docs[2].to_dict(), collection="users")
    engine.register_key(reloaded, engine.keygen("pw2"))
    engine.load_transform(reloaded)
    assert reloaded["name"] == "user2"


def test_sign_all_enables_required_authentication():
    legacy = configure(secret=SECRET, encrypted_fields=["name"], require_authentication_code=False)
    docs = _docs()
    for doc in docs:
        legacy.encrypt(doc)
    report = sign_all(legacy, docs)
    assert report.migrated == 3
    strict = configure(secret=SECRET, encrypted_fields=["name"])
    for doc in docs:
        strict.authenticate(doc)
    assert sign_all(strict, docs).skipped == 3
