#!/usr/bin/env python3
"""
PIN hashing and dual-format verification (bcrypt + legacy SHA-256 digests).
"""

import hashlib

import pytest

from core.errors import InvalidInput
from services.pin_credential import PinCredential


@pytest.fixture()
def cred():
    return PinCredential(rounds=4)


@pytest.mark.parametrize("secret", ["0000", "1234", "90210", "007007", "1234567", "99999999"])
def test_hash_then_verify(cred, secret):
    stored = cred.hash(secret)
    assert cred.verify(secret, stored) is True


def test_wrong_secret_does_not_verify(cred):
    stored = cred.hash("1234")
    assert cred.verify("1235", stored) is False
    assert cred.verify("12340", stored) is False
    assert cred.verify("0000", stored) is False


def test_hash_is_salted_and_embeds_cost(cred):
    first = cred.hash("1234")
    second = cred.hash("1234")

    assert first != second
    assert first.startswith("$2b$04$")
    assert len(first) == 60
    assert "1234" not in first


def test_legacy_sha256_digest_verifies():
    legacy = hashlib.sha256(b"4321").hexdigest()

    assert PinCredential.is_legacy(legacy)
    assert PinCredential.verify("4321", legacy) is True
    assert PinCredential.verify("4322", legacy) is False


def test_legacy_digest_in_upper_case_verifies():
    legacy = hashlib.sha256(b"4321").hexdigest().upper()
    assert PinCredential.verify("4321", legacy) is True


def test_bcrypt_hash_is_not_treated_as_legacy(cred):
    assert PinCredential.is_legacy(cred.hash("1234")) is False


@pytest.mark.parametrize(
    "stored",
    [
        "",
        "1234",
        "not-a-hash",
        "a" * 63,
        "g" * 64,
        "a" * 65,
        "$2b$04$tooshort",
        "$2b$04$" + "!" * 53,
        "$argon2id$v=19$m=65536,t=3,p=4$c2FsdA$aGFzaA",
    ],
)
def test_unrecognised_hash_never_verifies(stored):
    for secret in ("1234", "0000", stored):
        assert PinCredential.verify(secret, stored) is False


def test_verify_never_raises_on_bad_types():
    assert PinCredential.verify(None, "x" * 64) is False
    assert PinCredential.verify("1234", None) is False
    assert PinCredential.verify(1234, hashlib.sha256(b"1234").hexdigest()) is False
    # Unencodable strings on both the legacy and the bcrypt path
    assert PinCredential.verify("\ud800", hashlib.sha256(b"1234").hexdigest()) is False
    assert PinCredential.verify("12\udfff4", PinCredential(rounds=4).hash("1234")) is False


@pytest.mark.parametrize("secret", ["123", "123456789", "12a4", " 1234", "", "١٢٣٤", "²²²²"])
def test_hash_rejects_malformed_secret(cred, secret):
    with pytest.raises(InvalidInput):
        cred.hash(secret)


def test_exact_length_message():
    cred = PinCredential(rounds=4, min_length=4, max_length=4)
    with pytest.raises(InvalidInput) as exc:
        cred.validate_format("12345")
    assert "exactly 4 digits" in exc.value.detail


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
