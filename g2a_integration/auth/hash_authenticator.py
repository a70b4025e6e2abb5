# g2a_integration/auth/hash_authenticator.py
"""
Hash-based credentials for the Export API and the signed live token request.
"""

import hashlib
import time
from typing import Dict, List, Optional, Tuple

from g2a_integration.config.g2a_config import DEFAULT_EMAIL
from g2a_integration.utils.enhanced_logging import get_logger

logger = get_logger(__name__)

MIN_CREDENTIAL_LENGTH = 8


def generate_export_api_key(client_id: str, email: str, client_secret: str) -> str:
    """SHA-256 hex digest of ``client_id + email + client_secret``."""
    return hashlib.sha256(f"{client_id}{email}{client_secret}".encode("utf-8")).hexdigest()


def generate_token_signature(api_key: str, api_hash: str, timestamp: str) -> str:
    """SHA-256 hex digest of ``api_hash + api_key + timestamp``, sent as ``X-G2A-Hash``."""
    return hashlib.sha256(f"{api_hash}{api_key}{timestamp}".encode("utf-8")).hexdigest()


class HashAuthenticator:
    """
    Builds ``Authorization`` headers of the form ``"<client id>, <key>"``.

    Sandbox sends the raw API hash as the key; live sends the derived
    export key.
    """

    def __init__(self, api_key: str, api_hash: str, email: Optional[str] = None):
        self.api_key = api_key
        self.api_hash = api_hash
        self.email = email
        self.logger = get_logger("auth.hash")

    def get_export_api_headers(self) -> Dict[str, str]:
        if not self.email:
            self.logger.warning("Email not provided for Export API production auth, using default")

        export_key = generate_export_api_key(self.api_key, self.email or DEFAULT_EMAIL, self.api_hash)
        self.logger.debug(
            "Generated Export API auth headers",
            client_id=f"{self.api_key[:8]}...",
            export_key_length=len(export_key)
        )
        return {"Authorization": f"{self.api_key}, {export_key}"}

    def get_sandbox_headers(self) -> Dict[str, str]:
        return {"Authorization": f"{self.api_key}, {self.api_hash}"}

    def get_auth_headers(self, is_sandbox: bool) -> Dict[str, str]:
        return self.get_sandbox_headers() if is_sandbox else self.get_export_api_headers()

    def get_signed_headers(self, timestamp: Optional[int] = None) -> Dict[str, str]:
        """
        Timestamp-signed headers for the live OAuth2 token request.

        ``timestamp`` is in epoch seconds and defaults to now.
        """
        stamp = str(int(time.time()) if timestamp is None else timestamp)
        return {
            "X-API-HASH": self.api_hash,
            "X-API-KEY": self.api_key,
            "X-G2A-Timestamp": stamp,
            "X-G2A-Hash": generate_token_signature(self.api_key, self.api_hash, stamp),
        }

    def validate_credentials(self) -> Tuple[bool, List[str]]:
        """Return ``(valid, errors)`` for the configured credentials."""
        errors = []
        if not self.api_hash:
            errors.append("API Hash is required")
        elif len(self.api_hash) < MIN_CREDENTIAL_LENGTH:
            errors.append(f"API Hash is too short (minimum {MIN_CREDENTIAL_LENGTH} characters)")
        if not self.api_key:
            errors.append("API Key is required")
        elif len(self.api_key) < MIN_CREDENTIAL_LENGTH:
            errors.append(f"API Key is too short (minimum {MIN_CREDENTIAL_LENGTH} characters)")
        return not errors, errors
