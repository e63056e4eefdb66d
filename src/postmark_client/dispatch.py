from __future__ import annotations

import enum
import json
import logging
from typing import Any, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import (
    APIError,
    DeliveryError,
    DeserializationError,
    SerializationError,
    TransportError,
)
from .models import EmailResponse, WireModel

DEFAULT_BASE_URL = "https://api.postmarkapp.com"

SERVER_TOKEN_HEADER = "X-Postmark-Server-Token"
ACCOUNT_TOKEN_HEADER = "X-Postmark-Account-Token"

UNPROCESSABLE_ENTITY = 422

T = TypeVar("T")

log = logging.getLogger(__name__)


class HttpClient(Protocol):
    """Anything that can execute a fully-formed request.

    ``httpx.AsyncClient`` satisfies this as-is; timeouts, TLS, redirects and
    connection reuse are configured there.
    """

    async def send(self, request: httpx.Request) -> httpx.Response: ...


class TokenType(str, enum.Enum):
    SERVER = "server"
    ACCOUNT = "account"


def to_wire(payload: Any) -> Any:
    """Convert models (possibly nested in lists/dicts) into JSON-ready values."""
    if isinstance(payload, WireModel):
        return payload.to_wire()
    if isinstance(payload, (list, tuple)):
        return [to_wire(item) for item in payload]
    if isinstance(payload, dict):
        return {key: to_wire(value) for key, value in payload.items()}
    return payload


class Dispatcher:
    """Builds Postmark requests and runs a single round trip per call.

    Holds the two credentials and the base URL, all fixed at construction.
    Safe to share between tasks only if ``http_client`` is.
    """

    def __init__(
        self,
        http_client: HttpClient,
        server_token: str,
        account_token: str,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._http = http_client
        self._server_token = server_token
        self._account_token = account_token
        self._base_url = str(base_url).rstrip("/")

    @property
    def base_url(self) -> str:
        return self._base_url

    # ---------------------------------------------------------------
    # Request assembly
    # ---------------------------------------------------------------

    def _headers(self, token_type: TokenType) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if token_type == TokenType.ACCOUNT:
            headers[ACCOUNT_TOKEN_HEADER] = self._account_token
        else:
            headers[SERVER_TOKEN_HEADER] = self._server_token
        return headers

    @staticmethod
    def _encode(payload: Any) -> Optional[bytes]:
        if payload is None:
            return None
        try:
            return json.dumps(to_wire(payload), allow_nan=False).encode("utf-8")
        except (TypeError, ValueError, PydanticSerializationError) as exc:
            raise SerializationError(f"Failed to marshal payload: {exc}") from exc

    def build_request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        token_type: TokenType = TokenType.SERVER,
    ) -> httpx.Request:
        content = self._encode(payload)
        url = f"{self._base_url}/{path}"
        try:
            return httpx.Request(method, url, content=content, headers=self._headers(token_type))
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise TransportError(f"Failed to create request: {exc}") from exc

    # ---------------------------------------------------------------
    # Round trip
    # ---------------------------------------------------------------

    async def perform(
        self,
        method: str,
        path: str,
        payload: Any,
        result_type: Type[T],
        token_type: TokenType = TokenType.SERVER,
    ) -> T:
        """Send one request and decode the body into *result_type*.

        Raises ``SerializationError`` / ``TransportError`` before or during the
        call, ``DeliveryError`` for a 422 carrying a decodable nonzero
        ``ErrorCode``, ``APIError`` for any other 4xx/5xx and
        ``DeserializationError`` for an undecodable success body.
        """

        request = self.build_request(method, path, payload, token_type)
        log.debug("%s %s (%s token)", method, request.url, token_type.value)

        try:
            response = await self._http.send(request)
        except httpx.RequestError as exc:
            raise TransportError(f"Failed to perform request: {exc}") from exc

        try:
            body = await response.aread()
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise TransportError(f"Failed to read body: {exc}") from exc
        finally:
            await response.aclose()

        log.debug("%s %s -> %s", method, request.url, response.status_code)
        return self._decode(response, body, result_type)

    @staticmethod
    def _decode(response: httpx.Response, body: bytes, result_type: Type[T]) -> T:
        try:
            result = TypeAdapter(result_type).validate_json(body)
        except ValidationError as exc:
            if response.is_error:
                raise _api_error(response.status_code, body) from exc
            raise DeserializationError(f"Failed to unmarshal body: {exc}") from exc

        if response.is_error:
            # Message-level rejections (inactive recipient, bad sender...) come
            # back as 422 with a regular EmailResponse body.
            if (
                response.status_code == UNPROCESSABLE_ENTITY
                and isinstance(result, EmailResponse)
                and result.error_code != 0
            ):
                raise DeliveryError(result)
            raise _api_error(response.status_code, body)
        return result


def _api_error(status_code: int, body: bytes) -> APIError:
    """Pull ErrorCode/Message out of a Postmark error body when present."""
    try:
        data = json.loads(body)
    except ValueError:
        return APIError(status_code)
    if not isinstance(data, dict) or "ErrorCode" not in data:
        return APIError(status_code)
    return APIError(status_code, data.get("ErrorCode"), data.get("Message"))
