"""
Authenticated encryption of backup payloads.

Artifacts are encrypted with AES-256-GCM. The stored layout is:

    nonce (16 bytes) || auth tag (16 bytes) || ciphertext

Invariants:
    - A fresh random nonce is drawn for every encrypt() call
    - Decryption never returns data that failed tag verification
    - Key material never appears in logs, errors or repr

How to change safely:
    - The layout is shared with every artifact ever uploaded; a new
      layout needs a new metadata version and a decoder for the old one
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import IntegrityError

KEY_LENGTH = 32
NONCE_LENGTH = 16
TAG_LENGTH = 16
HEADER_LENGTH = NONCE_LENGTH + TAG_LENGTH


def derive_key(secret: str) -> bytes:
    """Derive the fixed-length AES key from an operator secret.

    The UTF-8 bytes are right-padded with ASCII '0' and truncated to
    KEY_LENGTH, so off-length secrets are still accepted.
    """
    raw = secret.encode("utf-8")
    return raw.ljust(KEY_LENGTH, b"0")[:KEY_LENGTH]


class CryptoCodec:
    """AES-256-GCM codec over opaque byte buffers.

    Example:
        >>> codec = CryptoCodec(derive_key("operator secret"))
        >>> blob = codec.encrypt(b"payload")
        >>> codec.decrypt(blob)
        b'payload'
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ValueError(f"Key must be {KEY_LENGTH} bytes")
        self._aesgcm = AESGCM(key)

    def __repr__(self) -> str:
        return "CryptoCodec(key=<redacted>)"

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt data and return nonce || tag || ciphertext."""
        nonce = os.urandom(NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(nonce, data, None)
        # AESGCM appends the tag; move it in front of the ciphertext.
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return nonce + tag + ciphertext

    def decrypt(self, blob: bytes) -> bytes:
        """Verify and decrypt a nonce || tag || ciphertext buffer.

        Raises:
            IntegrityError: If the buffer is truncated or authentication fails
        """
        if len(blob) < HEADER_LENGTH:
            raise IntegrityError("tampered or corrupted backup: artifact too short")

        nonce = blob[:NONCE_LENGTH]
        tag = blob[NONCE_LENGTH:HEADER_LENGTH]
        ciphertext = blob[HEADER_LENGTH:]

        try:
            return self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise IntegrityError("tampered or corrupted backup") from e
