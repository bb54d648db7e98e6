# mobile_crm/services/pin.py
"""
PIN representation.

Stored PINs are either a bcrypt hash or, for rows created before PINs were
hashed, the plaintext value. A plaintext PIN is upgraded to a hash the first
time it is verified and never goes back.
"""
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from mobile_crm.services.hashing import hash_secret, is_bcrypt_hash, verify_secret

DEFAULT_PIN = "1234"
PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 10


@dataclass(frozen=True)
class HashedPin:
    value: str


@dataclass(frozen=True)
class LegacyPin:
    value: str


Pin = Union[HashedPin, LegacyPin]


def parse_pin(stored: Optional[str]) -> Optional[Pin]:
    if not stored:
        return None
    if is_bcrypt_hash(stored):
        return HashedPin(stored)
    return LegacyPin(stored)


def hash_pin(pin: str) -> HashedPin:
    return HashedPin(hash_secret(pin))


def verify_pin(stored: Optional[Pin], candidate: str) -> Tuple[bool, Optional[HashedPin]]:
    """
    Check ``candidate`` against ``stored``.

    Returns ``(valid, upgraded)``; ``upgraded`` is a freshly hashed PIN only when
    a legacy plaintext PIN matched, and the caller must persist it.
    """
    if stored is None:
        return False, None
    if isinstance(stored, HashedPin):
        return verify_secret(candidate, stored.value), None
    if stored.value == candidate:
        return True, hash_pin(candidate)
    return False, None


def is_valid_pin_length(pin: str) -> bool:
    return PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH
