"""Human-facing order numbers: ``ORD-<epoch millis>-<5 base36 chars>``.

The same value doubles as the payment reference sent to the gateway.
"""

import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 5
MAX_ATTEMPTS = 5


def generate_order_number() -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"ORD-{millis}-{suffix}"
