# g2a_integration/auth/auth_manager.py
"""
Authentication for both partner API surfaces.

Export API requests carry hash credentials; Import API requests carry an
OAuth2 bearer token obtained from ``GET /token``. Sandbox authorizes the token
request with the Export hash header; live sends the API key and hash
as ``X-API-KEY``/``X-API-HASH`` plus an ``X-G2A-Timestamp`` and the
``X-G2A-Hash`` signature derived from it.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from g2a_integration.auth.hash_authenticator import HashAuthenticator
from g2a_integration.auth.token_manager import TokenManager
from g2a_integration.config import G2AConfig
from g2a_integration.exceptions import G2AError, G2AErrorCode
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.utils.error_mapper import ErrorMapper

logger = get_logger(__name__)


class ApiType(Enum):
    EXPORT = "export"
    IMPORT = "import"


class AuthManager:
    def __init__(self, config: G2AConfig, token_manager: Optional[TokenManager] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config
        self.env = config.env.value
        self.hash_authenticator = HashAuthenticator(config.api_key, config.api_hash, config.email)
        self.token_manager = token_manager or TokenManager(redis_url=config.redis_url)
        self._clock = clock
        self._token_client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_ms / 1000,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self.logger = get_logger("auth.manager")

    async def initialize(self):
        """
        Raises:
            G2AError: INVALID_CREDENTIALS when the configured credentials are unusable
        """
        await self.token_manager.initialize()

        valid, errors = self.hash_authenticator.validate_credentials()
        if not valid:
            self.logger.error("Invalid G2A credentials", errors=errors)
            raise G2AError(
                G2AErrorCode.INVALID_CREDENTIALS,
                f"Invalid G2A credentials: {', '.join(errors)}",
                context={"errors": errors},
            )

        self.logger.info("AuthManager initialized", env=self.env, is_sandbox=self.config.is_sandbox)

    def hash_headers(self) -> Dict[str, str]:
        return self.hash_authenticator.get_auth_headers(self.config.is_sandbox)

    def token_headers(self) -> Dict[str, str]:
        if self.config.is_sandbox:
            return self.hash_headers()
        return self.hash_authenticator.get_signed_headers(int(self._clock()))

    async def get_auth_headers(self, api_type: ApiType) -> Dict[str, str]:
        if api_type == ApiType.IMPORT:
            token = await self.token_manager.get_token(self.env, self.fetch_oauth2_token)
            return {"Authorization": f"Bearer {token}"}
        return self.hash_headers()

    async def fetch_oauth2_token(self) -> Dict[str, Any]:
        self.logger.debug("Fetching OAuth2 token from /token endpoint")
        try:
            response = await self._token_client.get("/token", headers=self.token_headers())
        except httpx.TransportError as e:
            raise ErrorMapper.from_transport_error(e, "fetch_oauth2_token", endpoint="/token") from e

        if response.status_code != 200:
            raise ErrorMapper.from_http_response(response, "fetch_oauth2_token", endpoint="/token")
        return response.json()

    async def refresh_oauth2_token(self) -> str:
        self.logger.info("Refreshing OAuth2 token")
        return await self.token_manager.refresh_token(self.env, self.fetch_oauth2_token)

    async def invalidate_token(self):
        await self.token_manager.invalidate_token(self.env)

    async def test_authentication(self, api_type: ApiType = ApiType.EXPORT) -> bool:
        if api_type == ApiType.IMPORT:
            try:
                await self.token_manager.get_token(self.env, self.fetch_oauth2_token)
            except G2AError as e:
                self.logger.error("Import API authentication test failed", error=str(e))
                return False
            return True

        valid, errors = self.hash_authenticator.validate_credentials()
        if not valid:
            self.logger.error("Export API authentication test failed", errors=errors)
            return False
        return True

    async def close(self):
        await self._token_client.aclose()
        await self.token_manager.close()


class ExportHashAuth(httpx.Auth):
    """httpx auth hook attaching hash credentials to Export API requests."""

    def __init__(self, auth_manager: AuthManager):
        self.auth_manager = auth_manager

    def auth_flow(self, request: httpx.Request):
        request.headers.update(self.auth_manager.hash_headers())
        yield request


class ImportBearerAuth(httpx.Auth):
    """
    httpx auth hook attaching the OAuth2 bearer token to Import API requests.

    A 401 invalidates the cached token and replays the request once with a
    fresh one.
    """

    def __init__(self, auth_manager: AuthManager):
        self.auth_manager = auth_manager

    def sync_auth_flow(self, request):
        raise RuntimeError("ImportBearerAuth requires an async client")

    async def async_auth_flow(self, request: httpx.Request):
        request.headers.update(await self.auth_manager.get_auth_headers(ApiType.IMPORT))
        response = yield request

        if response.status_code == 401:
            token = await self.auth_manager.refresh_oauth2_token()
            request.headers["Authorization"] = f"Bearer {token}"
            yield request
