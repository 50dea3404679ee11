"""
API key generation and validation utilities.

Two keys are configured: the admin key carries every scope, the optional
auditor key may only read consent records and download proofs. Keys are
compared by salted hash so plaintext keys are not kept after startup.
"""

import secrets
import hashlib
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

SCOPE_CONSENT_READ = "consent:read"
SCOPE_CONSENT_EXPORT = "consent:export"
SCOPE_PROOF_READ = "proof:read"
SCOPE_SCANNER_READ = "scanner:read"
SCOPE_SCANNER_RUN = "scanner:run"
SCOPE_SCANNER_WRITE = "scanner:write"

ALL_SCOPES = frozenset({
    SCOPE_CONSENT_READ,
    SCOPE_CONSENT_EXPORT,
    SCOPE_PROOF_READ,
    SCOPE_SCANNER_READ,
    SCOPE_SCANNER_RUN,
    SCOPE_SCANNER_WRITE,
})
AUDITOR_SCOPES = frozenset({SCOPE_CONSENT_READ, SCOPE_PROOF_READ})


def generate_api_key() -> str:
    """
    Generate a secure random API key.

    Returns:
        API key string (64 characters)
    """
    return secrets.token_urlsafe(48)


def hash_api_key(api_key: str, salt: str) -> str:
    """
    Hash an API key using SHA-256 with salt.

    Args:
        api_key: Plain API key
        salt: Salt prepended to the key

    Returns:
        Hashed API key
    """
    salted_key = salt.encode() + api_key.encode()
    return hashlib.sha256(salted_key).hexdigest()


@dataclass(frozen=True)
class Principal:
    """An authenticated API caller."""
    name: str
    scopes: FrozenSet[str] = field(default_factory=frozenset)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


class APIKeyRegistry:
    """Resolves API keys to principals."""

    def __init__(self, auth_config):
        self.salt = auth_config.api_key_salt
        self._entries: List[Tuple[str, Principal]] = [
            (hash_api_key(auth_config.admin_api_key, self.salt), Principal("admin", ALL_SCOPES)),
        ]
        if auth_config.auditor_api_key:
            self._entries.append(
                (hash_api_key(auth_config.auditor_api_key, self.salt), Principal("auditor", AUDITOR_SCOPES))
            )

    def authenticate(self, api_key: str) -> Optional[Principal]:
        """
        Args:
            api_key: Key presented by the caller

        Returns:
            Matching principal, or None if the key is unknown
        """
        if not api_key:
            return None
        hashed = hash_api_key(api_key, self.salt)
        match = None
        for stored, principal in self._entries:
            if secrets.compare_digest(hashed, stored) and match is None:
                match = principal
        return match
