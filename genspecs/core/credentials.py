from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol

from genspecs.utils.encryption import DecryptionError, SecretCipher
from genspecs.utils.logging import get_logger
from genspecs.utils.schemas import CredentialStatus, ValidationResult

LOGGER = get_logger(__name__)

STORAGE_KEY = "openrouter_api_key"
MISSING_KEY_ERROR = "API key is required"
SAVE_FAILED_ERROR = "Failed to save API key. Please try again."

KeyValidator = Callable[[str], Awaitable[ValidationResult]]


class StringStorage(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class CredentialStore:
    """Holds at most one API key, encrypted at rest.

    A key is only trusted after the provider accepted it. Anything that
    cannot be decrypted or revalidated on startup is cleared.
    """

    def __init__(self, storage: StringStorage, cipher: SecretCipher, validator: KeyValidator) -> None:
        self._storage = storage
        self._cipher = cipher
        self._validator = validator
        self._api_key: Optional[str] = None
        self._is_valid = False

    @property
    def api_key(self) -> Optional[str]:
        """The key, only while it is considered valid."""
        return self._api_key if self._is_valid else None

    @property
    def is_valid(self) -> bool:
        return self._is_valid

    def status(self) -> CredentialStatus:
        return CredentialStatus(has_key=self._api_key is not None, is_valid=self._is_valid)

    async def initialize(self) -> None:
        ciphertext = await self._storage.get(STORAGE_KEY)
        if not ciphertext:
            return
        try:
            key = await self._cipher.decrypt(ciphertext)
        except DecryptionError as exc:
            LOGGER.warning("Stored API key could not be decrypted (%s); clearing it", exc)
            await self.clear_key()
            return

        result = await self._validator(key)
        if result.is_valid:
            self._api_key = key
            self._is_valid = True
            LOGGER.info("Stored API key loaded and validated")
        else:
            LOGGER.warning("Stored API key failed validation (%s); clearing it", result.error)
            await self.clear_key()

    async def validate_key(self, key: Optional[str] = None) -> ValidationResult:
        """Check ``key`` (or the stored key) with the provider.

        Only a check of the stored key changes the validity flag.
        """
        candidate = key or self._api_key
        if not candidate:
            if key is None:
                self._is_valid = False
            return ValidationResult(is_valid=False, error=MISSING_KEY_ERROR)

        result = await self._validator(candidate)
        if key is None or key == self._api_key:
            self._is_valid = result.is_valid
        return result

    async def set_key(self, raw: str) -> ValidationResult:
        key = (raw or "").strip()
        if not key:
            return ValidationResult(is_valid=False, error=MISSING_KEY_ERROR)

        result = await self._validator(key)
        if not result.is_valid:
            LOGGER.info("New API key rejected; keeping the previous key")
            return result

        try:
            ciphertext = await self._cipher.encrypt(key)
            await self._storage.set(STORAGE_KEY, ciphertext)
        except Exception:
            LOGGER.exception("Failed to persist API key")
            return ValidationResult(is_valid=False, error=SAVE_FAILED_ERROR)

        self._api_key = key
        self._is_valid = True
        LOGGER.info("API key encrypted and saved")
        return ValidationResult(is_valid=True)

    async def clear_key(self) -> None:
        await self._storage.delete(STORAGE_KEY)
        self._api_key = None
        self._is_valid = False
        LOGGER.info("API key cleared")
