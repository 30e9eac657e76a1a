"""
Per-principal encryption of delegated session key material.

Key derivation:
    salt = BLAKE2b-256(principal_id, key=encryption_secret)
    key  = scrypt(master_encryption_key, salt)

Sealing uses XSalsa20-Poly1305 (nacl SecretBox) with a fresh random 24-byte
nonce per call. The nonce is stored alongside the ciphertext as the "IV". The
Poly1305 tag makes a decrypt under another principal's key fail outright
instead of yielding garbage.
"""

import logging
from functools import lru_cache
from typing import Optional

from nacl import pwhash
from nacl.encoding import HexEncoder, RawEncoder
from nacl.exceptions import CryptoError
from nacl.hash import blake2b
from nacl.secret import SecretBox
from nacl.utils import random as random_bytes

from sessionvault.config import settings

from .errors import ConfigurationError, DecryptionError, SessionValidationError
from .models import EncryptedKey


logger = logging.getLogger(__name__)

SALT_PERSON = b"sessionvault-kdf"


class KeyEncryptionService:
    """
    Encrypts and decrypts session key private keys for a principal.

    The service holds the master secret and nothing else; derived keys are
    cached per principal so repeated reads of the same session do not pay the
    scrypt cost again.
    """

    def __init__(
        self,
        master_key: Optional[str] = None,
        encryption_secret: Optional[str] = None,
        opslimit: Optional[int] = None,
        memlimit: Optional[int] = None,
        cache_size: int = 256,
    ):
        master_key = master_key if master_key is not None else settings.master_encryption_key
        if not master_key:
            raise ConfigurationError(
                "MASTER_ENCRYPTION_KEY must be set to store session keys"
            )

        self._master_key = master_key.encode("utf-8")
        secret = encryption_secret if encryption_secret is not None else settings.encryption_secret
        self._salt_key = blake2b(
            secret.encode("utf-8"), digest_size=32, encoder=RawEncoder
        )
        self._opslimit = opslimit or settings.scrypt_opslimit
        self._memlimit = memlimit or settings.scrypt_memlimit
        self._derive = lru_cache(maxsize=cache_size)(self._derive_key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(opslimit={self._opslimit}, memlimit={self._memlimit})"

    def _salt(self, principal_id: str) -> bytes:
        return blake2b(
            principal_id.encode("utf-8"),
            digest_size=pwhash.scrypt.SALTBYTES,
            key=self._salt_key,
            person=SALT_PERSON,
            encoder=RawEncoder,
        )

    def _derive_key(self, principal_id: str) -> bytes:
        return pwhash.scrypt.kdf(
            SecretBox.KEY_SIZE,
            self._master_key,
            self._salt(principal_id),
            opslimit=self._opslimit,
            memlimit=self._memlimit,
        )

    def _box(self, principal_id: str) -> SecretBox:
        if not principal_id:
            raise SessionValidationError("Principal ID required for key encryption")
        return SecretBox(self._derive(principal_id))

    def encrypt(self, plaintext_key: str, principal_id: str) -> EncryptedKey:
        """
        Seal a session key private key for a principal.

        Args:
            plaintext_key: The private key as the client sent it (base64 or base58)
            principal_id: Principal that owns the session

        Returns:
            EncryptedKey with hex ciphertext (tag included) and hex nonce
        """
        if not plaintext_key:
            raise SessionValidationError("Session key material is empty")

        box = self._box(principal_id)
        nonce = random_bytes(SecretBox.NONCE_SIZE)
        sealed = box.encrypt(plaintext_key.encode("utf-8"), nonce)

        return EncryptedKey(
            ciphertext=HexEncoder.encode(sealed.ciphertext).decode("ascii"),
            iv=HexEncoder.encode(nonce).decode("ascii"),
        )

    def decrypt(self, ciphertext: str, iv: str, principal_id: str) -> str:
        """
        Open a sealed session key.

        Raises:
            DecryptionError: If the material is malformed or was sealed for
                another principal or under another master key
        """
        box = self._box(principal_id)

        try:
            nonce = HexEncoder.decode(iv.encode("ascii"))
            raw = HexEncoder.decode(ciphertext.encode("ascii"))
            plaintext = box.decrypt(raw, nonce)
            return plaintext.decode("utf-8")
        except (CryptoError, ValueError, TypeError, UnicodeError) as e:
            # e never carries key material, but keep it out of caller-facing text
            logger.warning(
                f"Session key decryption failed for principal {principal_id}: "
                f"{type(e).__name__}"
            )
            raise DecryptionError("Session key could not be decrypted") from None


_encryption_service: Optional[KeyEncryptionService] = None


def get_encryption_service() -> KeyEncryptionService:
    """Get the process-wide encryption service built from settings."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = KeyEncryptionService()
    return _encryption_service
