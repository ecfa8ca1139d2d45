"""Snapshot encryption using AES-256-GCM with PBKDF2 key derivation.

- PBKDF2-SHA256 (100k iterations) for key derivation
- AES-256-GCM for authenticated encryption
- Random 16-byte salt + 12-byte nonce per envelope

Envelope format (base64 text): salt(16) + nonce(12) + ciphertext+tag

The layout and iteration count are fixed so that envelopes written by the
browser extension can be opened here and vice versa.
"""

import base64
import binascii
import json
import logging
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import DecryptionError

logger = logging.getLogger(__name__)


class CryptoEnvelope:
    """Seal/open JSON payloads with a user-provided passphrase."""

    PBKDF2_ITERATIONS = 100_000
    KEY_LENGTH = 32              # 256 bits for AES-256
    SALT_LENGTH = 16
    NONCE_LENGTH = 12            # 96-bit nonce for GCM
    TAG_LENGTH = 16

    # Minimum header size: salt + nonce
    _HEADER_SIZE = SALT_LENGTH + NONCE_LENGTH

    @staticmethod
    def derive_key(passphrase: str, salt: bytes) -> bytes:
        """Derive a 256-bit key from passphrase + salt via PBKDF2-SHA256."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=CryptoEnvelope.KEY_LENGTH,
            salt=salt,
            iterations=CryptoEnvelope.PBKDF2_ITERATIONS,
        )
        return kdf.derive(passphrase.encode("utf-8"))

    @staticmethod
    def seal(payload: Any, passphrase: str) -> str:
        """Encrypt the JSON serialization of payload.

        Returns: base64(salt(16) + nonce(12) + ciphertext_with_tag)

        Raises:
            TypeError: payload is not JSON-serializable.
        """
        plaintext = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        salt = os.urandom(CryptoEnvelope.SALT_LENGTH)
        key = CryptoEnvelope.derive_key(passphrase, salt)
        nonce = os.urandom(CryptoEnvelope.NONCE_LENGTH)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
        return base64.b64encode(salt + nonce + ciphertext).decode("ascii")

    @staticmethod
    def open(envelope: str, passphrase: str) -> Any:
        """Decrypt an envelope produced by seal().

        Raises:
            DecryptionError: Wrong passphrase, truncated/corrupt envelope, or
                failed authentication.  The message does not say which.
        """
        try:
            blob = base64.b64decode(envelope, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.debug("Envelope is not valid base64: %s", exc)
            raise DecryptionError() from None

        if len(blob) < CryptoEnvelope._HEADER_SIZE + CryptoEnvelope.TAG_LENGTH:
            logger.debug("Envelope too short (%d bytes)", len(blob))
            raise DecryptionError()

        salt = blob[: CryptoEnvelope.SALT_LENGTH]
        nonce = blob[CryptoEnvelope.SALT_LENGTH : CryptoEnvelope._HEADER_SIZE]
        ciphertext = blob[CryptoEnvelope._HEADER_SIZE :]
        key = CryptoEnvelope.derive_key(passphrase, salt)

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            logger.debug("Envelope authentication tag did not verify")
            raise DecryptionError() from None

        try:
            return json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            logger.debug("Envelope plaintext is not valid UTF-8 JSON")
            raise DecryptionError() from None
