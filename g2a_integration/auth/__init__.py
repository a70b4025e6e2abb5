from .hash_authenticator import HashAuthenticator, generate_export_api_key, generate_token_signature
from .token_manager import TokenManager, CachedToken
from .auth_manager import AuthManager, ApiType, ExportHashAuth, ImportBearerAuth

__all__ = [
    "HashAuthenticator",
    "generate_export_api_key",
    "generate_token_signature",
    "TokenManager",
    "CachedToken",
    "AuthManager",
    "ApiType",
    "ExportHashAuth",
    "ImportBearerAuth",
]
