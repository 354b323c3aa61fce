"""Rotating forensic logger emitting tamper-evident JSON lines."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from .paths import state_dir

LOGGER_NAME = "credindex.forensics"
MASK = "***"


def log_file(home: Optional[Path] = None) -> Path:
    return (home or state_dir()) / "logs" / "credindex.log"


def audit_log(home: Optional[Path] = None) -> Path:
    return (home or state_dir()) / "audit.jsonl"


def audit_key(home: Optional[Path] = None) -> Path:
    return (home or state_dir()) / "audit_ed25519.pem"


def _get_logger(home: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    target = log_file(home)
    for handler in list(logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            if handler.baseFilename == os.path.abspath(target):
                return logger
            # state directory moved since the handler was installed
            logger.removeHandler(handler)
            handler.close()

    target.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(target, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.addHandler(handler)
    return logger


def _load_or_create_key(home: Optional[Path]) -> ed25519.Ed25519PrivateKey:
    path = audit_key(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        return serialization.load_pem_private_key(path.read_bytes(), password=None)
    key = ed25519.Ed25519PrivateKey.generate()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path.write_bytes(pem)
    os.chmod(path, 0o600)
    return key


def _last_hash(home: Optional[Path]) -> Optional[str]:
    path = audit_log(home)
    if not path.exists():
        return None
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    if not lines:
        return None
    try:
        return json.loads(lines[-1]).get("hash")
    except json.JSONDecodeError:
        return None


def _write_audit_record(record: Dict[str, object], home: Optional[Path]) -> None:
    key = _load_or_create_key(home)
    entry: Dict[str, object] = {
        "ts": time.time(),
        "prev": _last_hash(home),
        "record": record,
    }
    canonical = json.dumps(entry, sort_keys=True, separators=(",", ":")).encode("utf-8")
    digest = hashlib.sha256(canonical).digest()
    entry["hash"] = hashlib.sha256(canonical).hexdigest()
    entry["signature"] = base64.b64encode(key.sign(digest)).decode("ascii")
    entry["public_key"] = base64.b64encode(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    ).decode("ascii")
    with audit_log(home).open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, sort_keys=True) + "\n")


def info(record: Dict[str, object], *, home: Optional[Path] = None) -> None:
    """Write a forensic JSON record to the rotating log and the audit chain.

    Files go under *home* when given, else under :func:`state_dir`.
    """

    logger = _get_logger(home)
    logger.info(json.dumps(record, sort_keys=True))
    _write_audit_record(record, home)


def verify_chain(path: Optional[Path] = None) -> int:
    """Check hashes, links and signatures of the audit chain.

    Returns the number of verified entries and raises :class:`ValueError` at
    the first entry that does not check out.
    """

    target = path or audit_log()
    if not target.exists():
        return 0
    previous: Optional[str] = None
    count = 0
    for number, line in enumerate(target.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        entry = json.loads(line)
        base_entry = {k: entry[k] for k in ("ts", "prev", "record")}
        canonical = json.dumps(base_entry, sort_keys=True, separators=(",", ":")).encode("utf-8")
        if entry["prev"] != previous:
            raise ValueError(f"audit entry {number} breaks the hash chain")
        if entry["hash"] != hashlib.sha256(canonical).hexdigest():
            raise ValueError(f"audit entry {number} hash mismatch")
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(base64.b64decode(entry["public_key"]))
        try:
            public_key.verify(base64.b64decode(entry["signature"]), hashlib.sha256(canonical).digest())
        except InvalidSignature as exc:
            raise ValueError(f"audit entry {number} signature invalid") from exc
        previous = entry["hash"]
        count += 1
    return count


__all__ = ["MASK", "audit_log", "info", "log_file", "verify_chain"]
