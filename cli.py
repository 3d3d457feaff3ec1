#!/usr/bin/env python3
"""
CLI for field-selective document encryption.

Documents are JSON lines in canonical encoding (binary fields as {"$binary": ...}).
Engine options come from DOCSEAL_* environment variables or --env-file.

Commands:
  genkey              Print a new random secret for DOCSEAL_SECRET
  keygen <secret>     Print the per-document key for a caller secret
  encrypt <in> <out>  Encrypt and sign every document
  decrypt <in> <out>  Authenticate and decrypt every document
  migrate <in> <out>  Encrypt and sign, reporting per-document failures
"""

import argparse
import sys
from pathlib import Path
from typing import Iterator, List, Optional

from docseal import (
    Document,
    DocSealError,
    TransformEngine,
    generate_secret,
    load_options_from_env,
    migrate_all,
    stable_decode,
    stable_encode,
)


def read_documents(path: Path, collection: str) -> Iterator[Document]:
    """Yield one Document per line; exit with an error on a malformed line."""
    with path.open("rb") as f:
        for number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                fields = stable_decode(line)
            except ValueError:
                fields = None
            if not isinstance(fields, dict):
                print(f"{path}:{number}: not a JSON object", file=sys.stderr)
                sys.exit(1)
            yield Document(fields, collection=collection)


def write_documents(path: Path, documents: List[Document]) -> None:
    with path.open("wb") as f:
        for document in documents:
            f.write(stable_encode(document.to_dict()) + b"\n")


def load_engine(args: argparse.Namespace) -> TransformEngine:
    try:
        return TransformEngine(load_options_from_env(args.env_file))
    except DocSealError as exc:
        print("Configuration error:", exc, file=sys.stderr)
        sys.exit(1)


def _document_key(engine: TransformEngine, args: argparse.Namespace) -> Optional[str]:
    secret = getattr(args, "document_secret", None)
    return engine.keygen(secret) if secret else None


def cmd_genkey(_: argparse.Namespace) -> None:
    print(generate_secret())


def cmd_keygen(args: argparse.Namespace) -> None:
    engine = load_engine(args)
    print(engine.keygen(args.secret))


def cmd_encrypt(args: argparse.Namespace) -> None:
    engine = load_engine(args)
    key = _document_key(engine, args)
    out = []
    try:
        for document in read_documents(Path(args.input), args.collection):
            if key:
                engine.register_key(document, key)
            engine.encrypt_and_sign(document)
            out.append(document)
    except DocSealError as exc:
        print("Encryption failed:", exc, file=sys.stderr)
        sys.exit(1)
    write_documents(Path(args.output), out)
    print("Encrypted", len(out), "document(s) to", args.output)


def cmd_decrypt(args: argparse.Namespace) -> None:
    engine = load_engine(args)
    key = _document_key(engine, args)
    out = []
    try:
        for document in read_documents(Path(args.input), args.collection):
            if key:
                engine.register_key(document, key)
            out.append(engine.load_transform(document))
    except DocSealError as exc:
        print("Decryption failed:", exc, file=sys.stderr)
        sys.exit(1)
    write_documents(Path(args.output), out)
    print("Decrypted", len(out), "document(s) to", args.output)


def cmd_migrate(args: argparse.Namespace) -> None:
    engine = load_engine(args)
    key = _document_key(engine, args)
    documents = list(read_documents(Path(args.input), args.collection))
    report = migrate_all(engine, documents, key_for=(lambda _doc: key) if key else None)
    write_documents(Path(args.output), documents)
    print("Migrated:", report.migrated, "Skipped:", report.skipped, "Failed:", len(report.failures))
    for document_id, exc in report.failures:
        print(" -", document_id, type(exc).__name__, file=sys.stderr)
    if not report.ok:
        sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Field-selective document encryption")
    parser.add_argument("--env-file", default=None, help="Path to a .env file with DOCSEAL_* options")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("genkey", help="Print a new random secret")
    p_keygen = sub.add_parser("keygen", help="Print the per-document key for a secret")
    p_keygen.add_argument("secret", help="Caller secret (e.g. a password)")
    for name, help_text in (
        ("encrypt", "Encrypt and sign documents"),
        ("decrypt", "Authenticate and decrypt documents"),
        ("migrate", "Encrypt and sign, reporting failures"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("input", help="Input JSON-lines file")
        p.add_argument("output", help="Output JSON-lines file")
        p.add_argument("--collection", required=True, help="Collection identity of the documents")
        p.add_argument("--document-secret", default=None, help="Secret for a per-document key")
    args = parser.parse_args(argv)
    commands = {
        "genkey": cmd_genkey,
        "keygen": cmd_keygen,
        "encrypt": cmd_encrypt,
        "decrypt": cmd_decrypt,
        "migrate": cmd_migrate,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
