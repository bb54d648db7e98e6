# mobile_crm/tests/test_pin.py
from mobile_crm.services.hashing import hash_secret
from mobile_crm.services.pin import (
    HashedPin,
    LegacyPin,
    hash_pin,
    is_valid_pin_length,
    parse_pin,
    verify_pin,
)


def test_parse_pin_recognises_bcrypt_prefix():
    assert isinstance(parse_pin(hash_secret("1234")), HashedPin)
    assert parse_pin("1234") == LegacyPin("1234")
    assert parse_pin(None) is None
    assert parse_pin("") is None


def test_hashed_pin_verifies_without_upgrade():
    stored = hash_pin("4321")
    assert verify_pin(stored, "4321") == (True, None)
    assert verify_pin(stored, "0000") == (False, None)


def test_legacy_pin_match_returns_hashed_upgrade():
    valid, upgraded = verify_pin(LegacyPin("5678"), "5678")
    assert valid is True
    assert isinstance(upgraded, HashedPin)
    assert upgraded.value.startswith("$2")
    # 升级后的哈希仍然能校验同一个 PIN
    assert verify_pin(upgraded, "5678") == (True, None)


def test_legacy_pin_mismatch_has_no_upgrade():
    assert verify_pin(LegacyPin("5678"), "8765") == (False, None)


def test_missing_pin_never_matches():
    assert verify_pin(None, "1234") == (False, None)


def test_pin_length_bounds():
    assert not is_valid_pin_length("123")
    assert is_valid_pin_length("1234")
    assert is_valid_pin_length("1234567890")
    assert not is_valid_pin_length("12345678901")
