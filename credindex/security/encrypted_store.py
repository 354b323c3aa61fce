"""Encrypted persistence helpers backed by AES-GCM."""

from __future__ import annotations

import base64
import json
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import PersistenceError
from ..utils.paths import state_dir

ENVELOPE_VERSION = 1
KDF_NAME = "pbkdf2-hmac-sha256"
DEFAULT_ITERATIONS = 200_000


class EncryptedStoreError(PersistenceError):
    """Raised when encrypted persistence fails."""


def derive_key(passphrase: str, salt: bytes, iterations: int = DEFAULT_ITERATIONS) -> bytes:
    """Derive a 256-bit AES key from *passphrase* with PBKDF2-HMAC-SHA256."""

    if not passphrase:
        raise EncryptedStoreError("master password is not configured")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(passphrase.encode("utf-8"))


@dataclass
class EncryptedJSONStore:
    """Persist JSON serialisable payloads encrypted at rest.

    The store derives an AES-256 key from the master password using
    PBKDF2-HMAC-SHA256 and seals payloads using AES-GCM. A fresh salt and
    nonce are drawn on every save. The sealed envelope is written to a
    temporary sibling and moved into place, so readers never observe a
    half-written file.
    """

    path: Optional[Path] = None
    passphrase_resolver: Callable[[], str] = lambda: ""  # type: ignore[arg-type]
    iterations: int = DEFAULT_ITERATIONS
    kdf_salt_bytes: int = 16
    nonce_bytes: int = 12
    associated_data: Optional[bytes] = b"credindex.records.v1"
    _resolved_path: Path = field(init=False, repr=False)

    def __post_init__(self) -> None:
        target = self.path or (state_dir() / "credentials.enc")
        self._resolved_path = Path(target)
        self._resolved_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def resolved_path(self) -> Path:
        return self._resolved_path

    # -- public API -----------------------------------------------------
    def exists(self) -> bool:
        return self._resolved_path.exists()

    def load(self, default: Any = None) -> Any:
        """Decrypt and return the stored payload.

        Parameters
        ----------
        default:
            Value returned when the backing file does not exist. The object is
            returned unchanged to avoid accidental mutation.
        """

        if not self._resolved_path.exists():
            return default
        try:
            payload = json.loads(self._resolved_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise EncryptedStoreError(f"failed to read {self._resolved_path}") from exc
        except json.JSONDecodeError as exc:  # pragma: no cover - corrupted file
            raise EncryptedStoreError("encrypted payload is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise EncryptedStoreError("encrypted payload has an unexpected shape")
        iterations = int(payload.get("iterations", self.iterations))
        salt = _b64decode_field(payload, "salt")
        nonce = _b64decode_field(payload, "nonce")
        ciphertext = _b64decode_field(payload, "ciphertext")
        key = derive_key(self._get_passphrase(), salt, iterations)
        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, self.associated_data)
        except InvalidTag as exc:
            raise EncryptedStoreError("decryption failed (invalid tag)") from exc
        try:
            return json.loads(plaintext.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise EncryptedStoreError("decrypted payload is not valid JSON") from exc

    def save(self, payload: Any) -> None:
        """Encrypt *payload* and persist it to disk."""

        encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
        salt = os.urandom(self.kdf_salt_bytes)
        nonce = secrets.token_bytes(self.nonce_bytes)
        key = derive_key(self._get_passphrase(), salt, self.iterations)
        ciphertext = AESGCM(key).encrypt(nonce, encoded, self.associated_data)
        envelope = {
            "version": ENVELOPE_VERSION,
            "kdf": KDF_NAME,
            "iterations": self.iterations,
            "salt": base64.b64encode(salt).decode("ascii"),
            "nonce": base64.b64encode(nonce).decode("ascii"),
            "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
        }
        tmp_path = self._resolved_path.with_suffix(self._resolved_path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(envelope, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._resolved_path)
        except OSError as exc:
            raise EncryptedStoreError(f"failed to write {self._resolved_path}") from exc
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def rotate_passphrase(self, new_passphrase: str) -> None:
        """Re-encrypt the payload with *new_passphrase* while preserving data."""

        if not new_passphrase:
            raise EncryptedStoreError("new master password must not be empty")
        data = self.load([])
        original_resolver = self.passphrase_resolver
        self.passphrase_resolver = lambda: new_passphrase
        try:
            self.save(data)
        except EncryptedStoreError:
            self.passphrase_resolver = original_resolver
            raise

    # -- helpers --------------------------------------------------------
    def _get_passphrase(self) -> str:
        try:
            return self.passphrase_resolver()
        except EncryptedStoreError:
            raise
        except Exception as exc:  # pragma: no cover - resolver supplied by caller
            raise EncryptedStoreError("failed to resolve master password") from exc


class FieldCipher:
    """Seal individual string fields with AES-GCM under one derived key.

    Each sealed value is ``base64(nonce || ciphertext)``. The salt feeding the
    key derivation is owned by the caller (for example a database metadata
    row) so that every field of one container shares a key.
    """

    def __init__(
        self,
        passphrase: str,
        salt: bytes,
        *,
        iterations: int = DEFAULT_ITERATIONS,
        nonce_bytes: int = 12,
    ) -> None:
        self._aesgcm = AESGCM(derive_key(passphrase, salt, iterations))
        self._nonce_bytes = nonce_bytes

    @staticmethod
    def new_salt(length: int = 16) -> bytes:
        return os.urandom(length)

    def seal(self, value: str) -> str:
        nonce = secrets.token_bytes(self._nonce_bytes)
        ciphertext = self._aesgcm.encrypt(nonce, value.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def open(self, sealed: str) -> str:
        try:
            raw = base64.b64decode(sealed)
        except ValueError as exc:
            raise EncryptedStoreError("sealed field is not valid base64") from exc
        nonce, ciphertext = raw[: self._nonce_bytes], raw[self._nonce_bytes :]
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, None).decode("utf-8")
        except InvalidTag as exc:
            raise EncryptedStoreError("field decryption failed (invalid tag)") from exc


def _b64decode_field(payload: Dict[str, Any], name: str) -> bytes:
    if name not in payload:
        raise EncryptedStoreError(f"missing field {name!r} in encrypted payload")
    try:
        return base64.b64decode(payload[name])
    except Exception as exc:  # pragma: no cover - invalid base64
        raise EncryptedStoreError(f"failed to decode field {name!r}") from exc


__all__ = ["EncryptedJSONStore", "EncryptedStoreError", "FieldCipher", "derive_key"]
