"""
utils.py

Hashing and difficulty checks for the proof-of-work captcha.

The hash is a cheap 31-multiplier string fold over 32-bit signed integers.
It is a work function, not a cryptographic primitive: its only job is to be
deterministic and identical wherever a (challenge, nonce) pair is checked.
"""

import struct

MASK_32 = 0xFFFFFFFF
SIGN_BIT = 0x80000000
HEX_WIDTH = 8


def _to_int32(value):
    """
    Reinterpret the low 32 bits of an integer as a signed 32-bit value.
    """
    value &= MASK_32
    return value - (1 << 32) if value & SIGN_BIT else value


def _code_units(s):
    """
    Return the UTF-16 code units of a string, left to right.
    """
    data = s.encode("utf-16-le", "surrogatepass")
    return struct.unpack(f"<{len(data) // 2}H", data)


def simple_hash(s):
    """
    Fold a string into a signed 32-bit hash.

    Args:
        s (str): Input string.

    Returns:
        int: Raw signed 32-bit accumulator. The empty string hashes to 0.
    """
    h = 0
    if not s:
        return h
    for unit in _code_units(s):
        # (h << 5) - h == h * 31
        h = _to_int32((h << 5) - h + unit)
    return h


def to_hex(n):
    """
    Render an unsigned 32-bit value as 8 lowercase, zero padded hex digits.

    Args:
        n (int): Value in [0, 0xFFFFFFFF].

    Returns:
        str: Hex digest without prefix.
    """
    if not 0 <= n <= MASK_32:
        raise ValueError(f"{n} is outside the unsigned 32-bit range")
    return format(n, f"0{HEX_WIDTH}x")


def abs32(hash_value):
    """
    Absolute value under 32-bit arithmetic, returned as an unsigned value.

    Negating -2**31 overflows back to itself; its unsigned bit pattern
    0x80000000 is what gets rendered.
    """
    if hash_value < 0:
        return (-hash_value) & MASK_32
    return hash_value & MASK_32


def digest(hash_value):
    """
    Turn a raw hash into the hex digest the difficulty is counted on.

    Args:
        hash_value (int): Signed 32-bit value from simple_hash.

    Returns:
        str: 8-character digest, never "00000000" for a raw hash of 0.
    """
    magnitude = abs32(hash_value)
    if magnitude == 0:
        magnitude = 1
    return to_hex(magnitude)


def trailing_zeros(hex_digest):
    """
    Count the '0' characters at the end of a digest.
    """
    return len(hex_digest) - len(hex_digest.rstrip("0"))


def meets_difficulty(hash_value, difficulty):
    """
    Check if a hash has at least `difficulty` trailing zero hex digits.

    Args:
        hash_value (int): Signed 32-bit value from simple_hash.
        difficulty (int): Required count of trailing zeros.

    Returns:
        bool: True if the digest qualifies. Difficulty 0 always qualifies.
    """
    if difficulty < 0:
        raise ValueError("difficulty must be non-negative")
    if difficulty == 0:
        return True
    return trailing_zeros(digest(hash_value)) >= difficulty


def candidate(challenge, nonce):
    """
    Build the exact string that is hashed for a (challenge, nonce) pair.
    """
    return f"{challenge}{nonce}"


def expected_trials(difficulty):
    """
    Expected number of nonces tried before a solution shows up,
    assuming uniformly distributed digests.
    """
    return 16 ** difficulty
