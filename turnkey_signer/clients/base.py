"""Base HTTP client for the Turnkey API layer.

Provides:
- One shared httpx.AsyncClient per client instance
- Timeout handling (caller-configurable, None disables it)
- Structured error classification into the TurnkeyError taxonomy

No retries, rate limiting or caching. Every failure is surfaced to the
caller as a terminal result for that call.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from turnkey_signer.errors import RemoteMethodError, SerializationError, TransportError
from turnkey_signer.models import TurnkeyResponseError

log = logging.getLogger("turnkey.http")

M = TypeVar("M", bound=BaseModel)


class BaseClient:
    """Thin async POST client that returns decoded pydantic models.

    Usage:
        client = BaseClient(base_url="https://api.turnkey.com", timeout=30.0)
        body = await client.post_json(
            "/public/v1/query/whoami",
            content='{"organizationId":"..."}',
            headers={"X-Stamp": x_stamp},
            response_model=WhoAmIResponse,
        )
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float | None = 30.0,
        provider_name: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider_name = provider_name
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def post_json(
        self,
        path: str,
        content: str | bytes,
        response_model: type[M],
        headers: dict[str, str] | None = None,
    ) -> M:
        """POST an already-serialised JSON body and decode the reply.

        The body is sent byte-for-byte as given; it is never re-encoded,
        so a signature computed over it stays valid.
        """
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})

        try:
            response = await self._client.post(path, content=content, headers=request_headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Connection error to {self.provider_name}: {e}") from e

        if not response.is_success:
            raise self._method_error(response)

        return self._decode(response, response_model)

    def _decode(self, response: httpx.Response, response_model: type[M]) -> M:
        try:
            return response_model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SerializationError(
                f"Unexpected {response_model.__name__} body from "
                f"{self.provider_name} ({response.status_code}): {e}"
            ) from e

    def _method_error(self, response: httpx.Response) -> Exception:
        """Turn a non-2xx response into RemoteMethodError.

        An error body that is not the structured shape becomes a
        SerializationError that keeps the status code and a body excerpt.
        """
        try:
            error = TurnkeyResponseError.model_validate(response.json())
        except (ValueError, ValidationError):
            return SerializationError(
                f"Undecodable error body from {self.provider_name} "
                f"({response.status_code}): {response.text[:200]}"
            )
        log.warning(
            "%s returned %d: code=%d message=%s",
            self.provider_name, response.status_code, error.code, error.message,
        )
        return RemoteMethodError(error, status_code=response.status_code)

    async def __aenter__(self) -> BaseClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
