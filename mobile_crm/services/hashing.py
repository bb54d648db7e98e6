# mobile_crm/services/hashing.py
import os

import bcrypt

# bcrypt 哈希的固定前缀（$2a$/$2b$/$2y$），用于识别 PIN 是否已哈希
BCRYPT_PREFIX = "$2"
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))
# bcrypt 只使用前 72 字节，新版本对更长的输入直接报错
BCRYPT_MAX_BYTES = 72


def _to_bytes(secret: str) -> bytes:
    return secret.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_secret(secret: str) -> str:
    '''Hash a password / PIN / recovery key / OTP using bcrypt'''
    return bcrypt.hashpw(
        _to_bytes(secret),
        bcrypt.gensalt(rounds=BCRYPT_ROUNDS),
    ).decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    '''verify a secret against its bcrypt hash'''
    if not secret_hash:
        return False
    try:
        return bcrypt.checkpw(
            _to_bytes(secret),
            secret_hash.encode("utf-8"),
        )
    except ValueError:
        # 存储值不是合法的 bcrypt 哈希
        return False


def is_bcrypt_hash(value: str) -> bool:
    return bool(value) and value.startswith(BCRYPT_PREFIX)
