"""
Token utility functions used by the signature and webhook layers.

These are pure functions that don't depend on models; they can be imported
and used in multiple places without circular imports.
"""

import secrets


SIGNATURE_TOKEN_PREFIX = 'SIG-'


def generate_secure_token(length=32):
    """
    Generate a cryptographically secure random token.

    Args:
        length: int, number of random bytes (default 32)

    Returns:
        str: URL-safe token string

    Example:
        >>> token = generate_secure_token()
        >>> len(token)  # ~43 chars for 32 bytes
    """
    return secrets.token_urlsafe(length)


def generate_signature_token():
    """
    Generate the unique token stored on a Signature record.

    Returns:
        str: e.g. 'SIG-3F9A0C1B7D2E4A6B8C0D1E2F'
    """
    return f"{SIGNATURE_TOKEN_PREFIX}{secrets.token_hex(12).upper()}"
