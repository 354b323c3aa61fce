"""Security primitives used by credindex storage backends."""

from .encrypted_store import EncryptedJSONStore, EncryptedStoreError, FieldCipher

__all__ = ["EncryptedJSONStore", "EncryptedStoreError", "FieldCipher"]
