import hashlib
import re

import pytest

from src.careplan.config import settings
from src.careplan.services.crypto.codec import (
    DECRYPTION_FAILED,
    INVALID_ENVELOPE,
    EncryptionCodec,
    is_envelope,
)

codec = EncryptionCodec("test-master-key")


@pytest.mark.parametrize(
    "text",
    [
        "Take Amoxicillin 500mg twice daily for 7 days",
        "Patient reports: mild headache; follow-up in 2 weeks",
        "Dosage ✓ naïve café €",
        "x" * 1000,
    ],
)
def test_round_trip_within_relationship(text):
    envelope = codec.encrypt(text, "doctor-1", "patient-1")
    assert codec.decrypt(envelope, "doctor-1", "patient-1") == text


def test_envelope_is_hex_pair_with_fresh_nonce():
    first = codec.encrypt("same text", "doctor-1", "patient-1")
    second = codec.encrypt("same text", "doctor-1", "patient-1")

    assert re.fullmatch(r"[0-9a-f]{32}:[0-9a-f]+", first)
    assert first != second
    assert first.split(":")[0] != second.split(":")[0]
    # AES block padding: 9 bytes of plaintext fit in one 16-byte block.
    assert len(first.split(":")[1]) == 32


@pytest.mark.parametrize(
    "doctor_id, patient_id",
    [
        ("doctor-2", "patient-1"),
        ("doctor-1", "patient-2"),
        ("patient-1", "doctor-1"),
    ],
)
def test_other_relationships_cannot_read_note(doctor_id, patient_id):
    text = "Confidential plan for patient one"
    envelope = codec.encrypt(text, "doctor-1", "patient-1")
    assert codec.decrypt(envelope, doctor_id, patient_id) != text


def test_different_master_secret_cannot_read_note():
    text = "Confidential plan"
    envelope = codec.encrypt(text, "doctor-1", "patient-1")
    assert EncryptionCodec("another-secret").decrypt(envelope, "doctor-1", "patient-1") != text


def test_key_is_bound_to_relationship_and_master_secret():
    expected = hashlib.sha256(b"doctor-1:patient-1:test-master-key").digest()
    assert codec.derive_key("doctor-1", "patient-1") == expected


def test_empty_plaintext_passes_through():
    assert codec.encrypt("", "doctor-1", "patient-1") == ""
    assert codec.decrypt("", "doctor-1", "patient-1") == ""


def test_value_without_delimiter_returns_sentinel():
    assert codec.decrypt("legacy plaintext note", "doctor-1", "patient-1") == INVALID_ENVELOPE


@pytest.mark.parametrize("envelope", ["zz:zz", "00:abcd", "00112233445566778899aabbccddeeff:abc"])
def test_malformed_envelope_returns_sentinel(envelope):
    assert codec.decrypt(envelope, "doctor-1", "patient-1") == DECRYPTION_FAILED


def test_missing_master_secret_fails_fast():
    with pytest.raises(ValueError):
        EncryptionCodec("")


def test_from_settings_uses_configured_secret():
    configured = EncryptionCodec.from_settings()
    envelope = configured.encrypt("hello", "doctor-1", "patient-1")
    assert EncryptionCodec(settings.encryption_key).decrypt(envelope, "doctor-1", "patient-1") == "hello"


def test_is_envelope_uses_colon_sentinel():
    assert is_envelope("abcd:ef01")
    assert not is_envelope("no delimiter here")
