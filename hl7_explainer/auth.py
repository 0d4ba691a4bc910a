"""Shared-secret authentication for the /stats endpoint.

The incoming header and the configured key are both reduced to SHA-256
digests and compared with hmac.compare_digest, so the comparison time does
not depend on where the values differ or on their lengths.
"""

import hashlib
import hmac
from typing import Optional


class AuthorizationError(Exception):
    """Raised when the admin key is missing or wrong."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


def hash_admin_key(raw_key: str) -> str:
    """Compute the hex SHA-256 digest of a raw admin key."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def verify_admin_key(header_value: Optional[str], admin_key: Optional[str]) -> None:
    """Check the ``x-admin`` header against the configured admin key.

    Args:
        header_value: The value from the x-admin header (may be None).
        admin_key: The configured secret. When unset, every request is refused.

    Raises:
        AuthorizationError: If the key is not configured, missing or invalid.
    """
    if not admin_key:
        raise AuthorizationError("Admin key is not configured.")

    if not header_value:
        raise AuthorizationError("Missing admin key.")

    incoming = hash_admin_key(header_value)
    expected = hash_admin_key(admin_key)

    if not hmac.compare_digest(incoming, expected):
        raise AuthorizationError("Invalid admin key.")
