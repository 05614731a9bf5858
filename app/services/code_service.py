"""
Short code generation and validation.

Generated codes use a 64 symbol URL-safe alphabet. Custom codes supplied by
users follow a stricter policy: alphanumeric only, 3 to 20 characters and
not one of the reserved route names.
"""

import re
import secrets
import string

DEFAULT_CODE_LENGTH = 6

# Letters, digits, '-' and '_' (64 symbols)
CODE_ALPHABET = string.ascii_letters + string.digits + "-_"

CUSTOM_CODE_MIN_LENGTH = 3
CUSTOM_CODE_MAX_LENGTH = 20
CUSTOM_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

RESERVED_CODES = frozenset({"api", "admin", "www", "app", "dashboard", "health", "status"})


def generate_code(length=DEFAULT_CODE_LENGTH):
    """Generate a random short code.

    Args:
        length: Number of characters in the code (default: 6)

    Returns:
        str: A random string drawn from CODE_ALPHABET using a
             cryptographically strong source
    """
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(max(length, 0)))


def is_valid_custom_code(code):
    """Check a user supplied short code against the custom code policy.

    Args:
        code: The requested short code

    Returns:
        bool: True if the code is 3-20 alphanumeric characters and is not
              a reserved word (case-insensitive, exact match only)
    """
    if not isinstance(code, str):
        return False

    if not CUSTOM_CODE_MIN_LENGTH <= len(code) <= CUSTOM_CODE_MAX_LENGTH:
        return False

    # fullmatch so a trailing newline is not accepted
    if not CUSTOM_CODE_PATTERN.fullmatch(code):
        return False

    return code.lower() not in RESERVED_CODES
