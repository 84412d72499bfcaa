"""AES-GCM encryption of tenant broker credentials."""

from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from rebalance_engine.errors import CredentialError

NONCE_BYTES = 12


@dataclass(frozen=True)
class BrokerCredentials:
    api_key: str
    secret_key: str

    def as_mapping(self) -> dict[str, str]:
        return {"api_key": self.api_key, "secret_key": self.secret_key}


class EncryptionService:
    """AES-GCM service keyed by the MASTER_KEY environment variable."""

    def __init__(self, master_key_hex: str | None = None) -> None:
        key_hex = master_key_hex or os.environ.get("MASTER_KEY")
        if not key_hex:
            raise CredentialError("MASTER_KEY environment variable is required.")
        try:
            key = bytes.fromhex(key_hex)
        except ValueError as exc:
            raise CredentialError("MASTER_KEY must be a valid hex string.") from exc
        if len(key) != 32:
            raise CredentialError("MASTER_KEY must be 32 bytes (64 hex chars).")
        self._aesgcm = AESGCM(key)

    def encrypt(self, credentials: BrokerCredentials) -> tuple[bytes, bytes]:
        """Encrypt a key pair. Returns (ciphertext, nonce)."""
        nonce = os.urandom(NONCE_BYTES)
        plaintext = f"{credentials.api_key}:{credentials.secret_key}".encode("utf-8")
        return self._aesgcm.encrypt(nonce, plaintext, None), nonce

    def decrypt(self, ciphertext: bytes, nonce: bytes) -> BrokerCredentials:
        """
        Decrypt a stored key pair.

        Raises:
            CredentialError: Wrong key, tampered ciphertext or malformed payload
        """
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, None).decode("utf-8")
        except (InvalidTag, ValueError) as exc:
            raise CredentialError("Stored credentials could not be decrypted.") from exc
        if ":" not in plaintext:
            raise CredentialError("Invalid credential payload format.")
        api_key, secret_key = plaintext.split(":", maxsplit=1)
        return BrokerCredentials(api_key=api_key, secret_key=secret_key)
