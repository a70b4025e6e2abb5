# g2a_integration/api/base.py
from typing import Any, Callable, Iterable, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from g2a_integration.clients.request_executor import RequestExecutor
from g2a_integration.exceptions import G2AError, G2AErrorCode, ValidationError
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.utils.error_mapper import ErrorMapper, response_payload

M = TypeVar('M', bound=BaseModel)

ErrorHandler = Callable[[httpx.Response], None]


class BaseAPI:
    """
    Shared plumbing for the partner resource modules.

    Subclasses set ``scope``, the logical endpoint key used for rate
    limiting and circuit breaking.
    """

    scope = "/"

    def __init__(self, http_client: httpx.AsyncClient, executor: RequestExecutor):
        self.http = http_client
        self.executor = executor
        self.logger = get_logger(f"api.{self.__class__.__name__}")

    def _operation(self, name: str) -> str:
        return f"{self.__class__.__name__}.{name}"

    async def _request(self, name: str, method: str, path: str, *,
                       ok_statuses: Iterable[int] = (200,),
                       on_error: Optional[ErrorHandler] = None,
                       scope: Optional[str] = None,
                       **kwargs) -> Any:
        """
        Issue one request through the pipeline and return the decoded JSON body.

        ``on_error`` sees non-OK 4xx responses first and may raise a more
        specific error; anything it lets through is mapped generically.
        """
        operation = self._operation(name)
        scope = scope or self.scope
        ok_statuses = tuple(ok_statuses)

        async def request_fn():
            response = await self.http.request(method, path, **kwargs)
            if response.status_code >= 500 or response.status_code == 429:
                raise ErrorMapper.from_http_response(response, operation, endpoint=scope)
            if response.status_code not in ok_statuses:
                if on_error is not None:
                    on_error(response)
                raise ErrorMapper.from_http_response(response, operation, endpoint=scope)
            if not response.content:
                return {}
            return response.json()

        return await self.executor.execute(scope, operation, request_fn)

    def _parse(self, model: Type[M], data: Any, name: str) -> M:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise G2AError(
                G2AErrorCode.API_ERROR,
                f"Unexpected response shape in {self._operation(name)}",
                retryable=False,
                endpoint=self.scope,
                context={"operation": self._operation(name), "errors": e.errors(include_url=False)},
                original_exception=e,
            ) from e

    def _validate(self, model: Type[M], data: Any, name: str) -> M:
        """Validate caller input, raising the client's ``ValidationError``."""
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data or {})
        except PydanticValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError(
                f"Invalid input for {self._operation(name)}: {first.get('msg', str(e))}",
                field=field,
                value=first.get("input"),
            ) from e

    @staticmethod
    def partner_code(response: httpx.Response) -> Optional[str]:
        code = response_payload(response).get("code")
        return str(code) if code is not None else None
