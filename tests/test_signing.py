"""
Authentication codes: layout, tamper detection, collection binding,
recorded field list, fail-closed parsing.
"""

import json
import os

import pytest
from Crypto.Hash import HMAC, SHA512

import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from docseal.canonical import stable_encode
from docseal.errors import MissingIdentity
from docseal.signing import (
    DIGEST_SIZE,
    VERSION,
    compute_signature,
    read_authenticated_fields,
    signed_field_names,
    verify_signature,
)

KEY = os.urandom(64)


def _doc():
    return {"_id": 7, "_ct": b"a" + os.urandom(48), "email": "joe@example.com", "plain": "x"}


def test_code_layout():
    code = compute_signature(_doc(), ["email"], "users", KEY)
    assert code[:1] == VERSION
    names = json.loads(code[1 + DIGEST_SIZE:].decode("utf-8"))
    assert names == ["_ct", "_id", "email"]
    assert read_authenticated_fields(code) == names


def test_signed_field_names_adds_implicit():
    assert signed_field_names([]) == ["_ct", "_id"]
    assert signed_field_names(["b", "a", "a"]) == ["_ct", "_id", "a", "b"]


def test_verify_and_deterministic():
    doc = _doc()
    code = compute_signature(doc, ["email"], "users", KEY)
    assert compute_signature(doc, ["email"], "users", KEY) == code
    assert verify_signature(doc, code, "users", KEY)


def test_unauthenticated_field_change_ignored():
    doc = _doc()
    code = compute_signature(doc, ["email"], "users", KEY)
    doc["plain"] = "changed"
    assert verify_signature(doc, code, "users", KEY)


def test_tamper_detection():
    doc = _doc()
    code = compute_signature(doc, ["email"], "users", KEY)
    tampered = dict(doc, email="eve@example.com")
    assert not verify_signature(tampered, code, "users", KEY)
    ct = bytearray(doc["_ct"])
    ct[-1] ^= 1
    assert not verify_signature(dict(doc, _ct=bytes(ct)), code, "users", KEY)
    assert not verify_signature(dict(doc, _id=8), code, "users", KEY)
    removed = dict(doc)
    del removed["email"]
    assert not verify_signature(removed, code, "users", KEY)


def test_collection_binding():
    doc = _doc()
    code = compute_signature(doc, [], "users", KEY)
    assert not verify_signature(doc, code, "admins", KEY)


def test_wrong_key():
    doc = _doc()
    code = compute_signature(doc, [], "users", KEY)
    assert not verify_signature(doc, code, "users", os.urandom(64))


def test_recorded_field_list_used():
    doc = _doc()
    code = compute_signature(doc, ["email", "plain"], "users", KEY)
    # later configuration no longer names "plain"; the code still covers it
    assert verify_signature(doc, code, "users", KEY)
    assert not verify_signature(dict(doc, plain="y"), code, "users", KEY)


def test_field_list_tamper_detected():
    doc = _doc()
    code = compute_signature(doc, ["email"], "users", KEY)
    forged = code[:1 + DIGEST_SIZE] + b'["_ct","_id"]'
    assert not verify_signature(doc, forged, "users", KEY)


def test_fail_closed_on_malformed():
    doc = _doc()
    code = compute_signature(doc, [], "users", KEY)
    assert not verify_signature(doc, None, "users", KEY)
    assert not verify_signature(doc, b"", "users", KEY)
    assert not verify_signature(doc, b"z" + code[1:], "users", KEY)
    assert not verify_signature(doc, code[:1 + DIGEST_SIZE], "users", KEY)
    assert not verify_signature(doc, code[:1 + DIGEST_SIZE] + b"{bad", "users", KEY)
    assert not verify_signature(doc, "text code", "users", KEY)
    assert read_authenticated_fields(code[:1 + DIGEST_SIZE] + b'[1,2]') is None


def test_sign_requires_identity_and_envelope():
    doc = _doc()
    del doc["_id"]
    with pytest.raises(MissingIdentity):
        compute_signature(doc, [], "users", KEY)
    doc = _doc()
    del doc["_ct"]
    with pytest.raises(MissingIdentity):
        compute_signature(doc, [], "users", KEY)


def test_verify_rejects_missing_identity():
    doc = _doc()
    code = compute_signature(doc, [], "users", KEY)
    no_id = dict(doc)
    del no_id["_id"]
    assert not verify_signature(no_id, code, "users", KEY)
    no_ct = dict(doc)
    del no_ct["_ct"]
    assert not verify_signature(no_ct, code, "users", KEY)


def test_verify_rejects_code_without_identity_fields():
    # a code whose recorded list omits _id never verifies, even if the digest matches
    doc = _doc()
    names = ["_ct"]
    h = HMAC.new(KEY, digestmod=SHA512)
    for part in (VERSION, b"users", json.dumps(names, separators=(",", ":")).encode(),
                 stable_encode({"_ct": doc["_ct"]})):
        h.update(len(part).to_bytes(8, "big"))
        h.update(part)
    forged = VERSION + h.digest() + b'["_ct"]'
    assert not verify_signature(doc, forged, "users", KEY)
