from __future__ import annotations

import hashlib
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from src.careplan.config import settings

logger = logging.getLogger("careplan.crypto")

ENVELOPE_DELIMITER = ":"
NONCE_BYTES = 16

# Returned instead of plaintext when an envelope cannot be read. Callers get a
# displayable string rather than an exception.
INVALID_ENVELOPE = "[Invalid encrypted format]"
DECRYPTION_FAILED = "[Decryption failed]"


def is_envelope(value: str) -> bool:
    """Return True if ``value`` looks like an encrypted envelope.

    Notes stored before encryption was introduced contain no delimiter and are
    treated as plaintext. Plaintext that happens to contain a colon cannot be
    told apart from an envelope.
    """

    return ENVELOPE_DELIMITER in value


class EncryptionCodec:
    """AES-256-CBC note encryption keyed per (doctor, patient) relationship.

    The key is ``sha256("<doctor_id>:<patient_id>:<master_secret>")`` so the
    master secret alone cannot decrypt a note without both participant ids.
    Envelopes are ``<ivHex>:<cipherHex>`` with a fresh random IV per call.

    There is no authentication tag: the codec provides confidentiality only
    and cannot detect tampering.
    """

    def __init__(self, master_secret: str) -> None:
        if not master_secret:
            raise ValueError("Encryption master key is missing. Set ENCRYPTION_KEY.")
        self._master_secret = master_secret

    @classmethod
    def from_settings(cls, master_secret: Optional[str] = None) -> "EncryptionCodec":
        return cls(master_secret or settings.encryption_key or "")

    def derive_key(self, doctor_id: str, patient_id: str) -> bytes:
        material = f"{doctor_id}:{patient_id}:{self._master_secret}"
        return hashlib.sha256(material.encode("utf-8")).digest()

    def encrypt(self, plaintext: str, doctor_id: str, patient_id: str) -> str:
        if not plaintext:
            return ""

        iv = os.urandom(NONCE_BYTES)
        encryptor = Cipher(algorithms.AES(self.derive_key(doctor_id, patient_id)), modes.CBC(iv)).encryptor()
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}{ENVELOPE_DELIMITER}{ciphertext.hex()}"

    def decrypt(self, envelope: str, doctor_id: str, patient_id: str) -> str:
        """Decrypt an envelope, returning a sentinel string on any failure."""

        if not envelope:
            return ""
        if not is_envelope(envelope):
            logger.warning("Refusing to decrypt value without envelope delimiter")
            return INVALID_ENVELOPE

        iv_hex, _, cipher_hex = envelope.partition(ENVELOPE_DELIMITER)
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(cipher_hex)
            decryptor = Cipher(algorithms.AES(self.derive_key(doctor_id, patient_id)), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except ValueError as exc:
            # Covers bad hex, wrong IV/block sizes, bad padding (usually a
            # mismatched key) and undecodable output.
            logger.error("Decryption error: %s", exc)
            return DECRYPTION_FAILED
