"""Symmetric obfuscation for secrets kept in local storage.

The passphrase is a configuration constant, so this only protects against
casual inspection of the database file.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_BYTES = 16
IV_BYTES = 12


class DecryptionError(Exception):
    """Ciphertext is malformed or was not produced with this passphrase."""


class SecretCipher:
    def __init__(self, passphrase: str, *, iterations: int = 100_000) -> None:
        self._passphrase = passphrase.encode("utf-8")
        self._iterations = iterations

    def _derive(self, salt: bytes) -> AESGCM:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self._iterations,
        )
        return AESGCM(kdf.derive(self._passphrase))

    def encrypt_sync(self, plaintext: str) -> str:
        salt = os.urandom(SALT_BYTES)
        iv = os.urandom(IV_BYTES)
        sealed = self._derive(salt).encrypt(iv, plaintext.encode("utf-8"), None)
        return base64.b64encode(salt + iv + sealed).decode("ascii")

    def decrypt_sync(self, ciphertext: str) -> str:
        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise DecryptionError("Ciphertext is not valid base64") from exc
        if len(raw) <= SALT_BYTES + IV_BYTES:
            raise DecryptionError("Ciphertext is too short")

        salt, iv, sealed = raw[:SALT_BYTES], raw[SALT_BYTES:SALT_BYTES + IV_BYTES], raw[SALT_BYTES + IV_BYTES:]
        try:
            return self._derive(salt).decrypt(iv, sealed, None).decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as exc:
            raise DecryptionError("Ciphertext could not be decrypted") from exc

    async def encrypt(self, plaintext: str) -> str:
        # PBKDF2 blocks for tens of milliseconds
        return await asyncio.to_thread(self.encrypt_sync, plaintext)

    async def decrypt(self, ciphertext: str) -> str:
        return await asyncio.to_thread(self.decrypt_sync, ciphertext)
