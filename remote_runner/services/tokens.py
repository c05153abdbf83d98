"""Random token generation for unique staging names"""

import secrets

ALPHA = "abcdefghijklmnopqrstuvwxyz"
ALPHA_UPPER = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
NUMERIC = "1234567890"
SPECIAL = "!@#$%^&*()_-"
ALPHA_NUMERIC = ALPHA + ALPHA_UPPER + NUMERIC


def random_string_from_alphabet(alphabet: str, length: int) -> str:
    """Draw ``length`` characters from ``alphabet`` using a CSPRNG.

    Raises:
        ValueError: alphabet is empty or length is negative
    """
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    if length < 0:
        raise ValueError("length must not be negative")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def random_alphanumeric_string(length: int) -> str:
    return random_string_from_alphabet(ALPHA_NUMERIC, length)
