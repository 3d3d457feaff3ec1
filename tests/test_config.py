"""
Options loaded from DOCSEAL_* environment variables and .env files.
"""

import os

import pytest

import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from docseal.config import load_options_from_env
from docseal.errors import ConfigurationError
from docseal.engine import TransformEngine

_VARS = (
    "SECRET", "ENCRYPTION_KEY", "SIGNING_KEY", "COLLECTION_IDENTITY",
    "ENCRYPTED_FIELDS", "AUTHENTICATED_FIELDS", "REQUIRE_AUTHENTICATION_CODE",
    "DECRYPT_AFTER_ENCRYPT", "PER_DOCUMENT_KEYS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv("DOCSEAL_" + name, raising=False)
    yield
    # load_dotenv writes os.environ directly
    for name in _VARS:
        os.environ.pop("DOCSEAL_" + name, None)


def test_env_variables(monkeypatch, tmp_path):
    monkeypatch.setenv("DOCSEAL_SECRET", "from-env")
    monkeypatch.setenv("DOCSEAL_ENCRYPTED_FIELDS", "name, age")
    monkeypatch.setenv("DOCSEAL_AUTHENTICATED_FIELDS", "email")
    monkeypatch.setenv("DOCSEAL_REQUIRE_AUTHENTICATION_CODE", "false")
    options = load_options_from_env(str(tmp_path / "missing.env"))
    assert options.secret == "from-env"
    assert options.encrypted_fields == ["name", "age"]
    assert options.additional_authenticated_fields == ["email"]
    assert options.require_authentication_code is False
    assert options.decrypt_after_encrypt is True
    TransformEngine(options)


def test_env_file(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("DOCSEAL_SECRET=file-secret\nDOCSEAL_PER_DOCUMENT_KEYS=yes\n")
    options = load_options_from_env(str(env_file))
    assert options.secret == "file-secret"
    assert options.per_document_keys is True


def test_overrides_win(monkeypatch, tmp_path):
    monkeypatch.setenv("DOCSEAL_SECRET", "from-env")
    options = load_options_from_env(str(tmp_path / "missing.env"), collection_identity="users")
    assert options.collection_identity == "users"


def test_missing_key_material(tmp_path):
    with pytest.raises(ConfigurationError):
        load_options_from_env(str(tmp_path / "missing.env"))
