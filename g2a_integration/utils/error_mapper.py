# g2a_integration/utils/error_mapper.py
"""
Boundary translation of transport and HTTP failures into ``G2AError``.

Everything above the request pipeline sees only taxonomy-coded errors.
"""

from typing import Any, Dict, Optional

import httpx

from g2a_integration.exceptions import G2AError, G2AErrorCode

# Partner error codes returned in the response body
PARTNER_ERROR_CODES: Dict[str, G2AErrorCode] = {
    "AUTH01": G2AErrorCode.AUTH_FAILED,
    "AUTH02": G2AErrorCode.INVALID_CREDENTIALS,
    "AUTH03": G2AErrorCode.AUTH_FAILED,
    "AUTH04": G2AErrorCode.AUTH_FAILED,
    "ORD02": G2AErrorCode.ORDER_NOT_FOUND,
    "ORD004": G2AErrorCode.INVALID_REQUEST,
    "ORD03": G2AErrorCode.INVALID_REQUEST,
    "ORD05": G2AErrorCode.INVALID_REQUEST,
    "ORD112": G2AErrorCode.INVALID_REQUEST,
    "ORD114": G2AErrorCode.INVALID_REQUEST,
    "ORD121": G2AErrorCode.QUOTA_EXCEEDED,
    "ORD122": G2AErrorCode.API_ERROR,
    "BR03": G2AErrorCode.RATE_LIMIT,
}

DEFAULT_RATE_LIMIT_RETRY_AFTER_MS = 5000


def response_payload(response: httpx.Response) -> Dict[str, Any]:
    """Decode a JSON object body, returning an empty dict for anything else."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _retry_after_ms(response: httpx.Response) -> int:
    header = response.headers.get("retry-after")
    if header:
        try:
            return int(float(header) * 1000)
        except ValueError:
            pass
    return DEFAULT_RATE_LIMIT_RETRY_AFTER_MS


class ErrorMapper:
    """Maps partner responses and client-side exceptions onto the error taxonomy."""

    @staticmethod
    def from_http_response(response: httpx.Response, operation: str,
                           endpoint: Optional[str] = None) -> G2AError:
        status = response.status_code
        data = response_payload(response)
        partner_code = data.get("code")
        message = data.get("message") or response.reason_phrase or f"HTTP {status}"

        if partner_code:
            mapped = PARTNER_ERROR_CODES.get(str(partner_code), G2AErrorCode.API_ERROR)
            return G2AError(
                mapped,
                message,
                retryable=mapped in (G2AErrorCode.RATE_LIMIT, G2AErrorCode.QUOTA_EXCEEDED) or status >= 500,
                retry_after=_retry_after_ms(response) if mapped == G2AErrorCode.RATE_LIMIT else None,
                error_code=str(partner_code),
                http_status=status,
                endpoint=endpoint,
                context={"operation": operation},
            )

        return ErrorMapper.from_status(status, message, operation, endpoint=endpoint,
                                       retry_after=_retry_after_ms(response) if status == 429 else None)

    @staticmethod
    def from_status(status: int, message: str, operation: str, endpoint: Optional[str] = None,
                    retry_after: Optional[int] = None) -> G2AError:
        context = {"operation": operation}

        if status in (401, 403):
            return G2AError(
                G2AErrorCode.AUTH_FAILED,
                f"Authentication failed in {operation}: {message}",
                retryable=False, http_status=status, endpoint=endpoint, context=context,
            )
        if status == 404:
            return G2AError(
                G2AErrorCode.PRODUCT_NOT_FOUND,
                f"Resource not found in {operation}: {message}",
                retryable=False, http_status=status, endpoint=endpoint, context=context,
            )
        if status == 429:
            return G2AError(
                G2AErrorCode.RATE_LIMIT,
                f"Rate limit exceeded in {operation}: {message}",
                retryable=True,
                retry_after=retry_after or DEFAULT_RATE_LIMIT_RETRY_AFTER_MS,
                http_status=status, endpoint=endpoint, context=context,
            )
        if status >= 500:
            return G2AError(
                G2AErrorCode.API_ERROR,
                f"Server error in {operation}: {message}",
                retryable=True, http_status=status, endpoint=endpoint, context=context,
            )
        if status >= 400:
            return G2AError(
                G2AErrorCode.INVALID_REQUEST,
                f"Invalid request in {operation}: {message}",
                retryable=False, http_status=status, endpoint=endpoint, context=context,
            )
        return G2AError(
            G2AErrorCode.API_ERROR,
            f"Unexpected response in {operation}: {message}",
            retryable=False, http_status=status, endpoint=endpoint, context=context,
        )

    @staticmethod
    def from_transport_error(error: httpx.TransportError, operation: str,
                             endpoint: Optional[str] = None) -> G2AError:
        context = {"operation": operation, "original_error": str(error)}
        if isinstance(error, httpx.TimeoutException):
            return G2AError(
                G2AErrorCode.TIMEOUT,
                f"Request timeout in {operation}: {error}",
                retryable=True, endpoint=endpoint, context=context, original_exception=error,
            )
        if isinstance(error, (httpx.NetworkError, httpx.ProxyError, httpx.ProtocolError)):
            return G2AError(
                G2AErrorCode.NETWORK_ERROR,
                f"Network error in {operation}: {error}",
                retryable=True, endpoint=endpoint, context=context, original_exception=error,
            )
        return G2AError(
            G2AErrorCode.API_ERROR,
            f"G2A API error in {operation}: {error}",
            retryable=False, endpoint=endpoint, context=context, original_exception=error,
        )

    @staticmethod
    def from_error(error: BaseException, operation: str, endpoint: Optional[str] = None) -> G2AError:
        """Normalize any exception. ``G2AError`` instances pass through unchanged."""
        if isinstance(error, G2AError):
            return error
        if isinstance(error, httpx.HTTPStatusError):
            return ErrorMapper.from_http_response(error.response, operation, endpoint=endpoint)
        if isinstance(error, httpx.TransportError):
            return ErrorMapper.from_transport_error(error, operation, endpoint=endpoint)
        return G2AError(
            G2AErrorCode.API_ERROR,
            f"Unexpected error in {operation}: {error}",
            retryable=False,
            endpoint=endpoint,
            context={"operation": operation, "original_error": str(error)},
            original_exception=error,
        )
