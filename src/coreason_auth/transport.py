# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

"""
HTTP Transport port used by the OAuth delegate, plus the default httpx implementation.
"""

import json
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import anyio
import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from pydantic import BaseModel, ConfigDict

from coreason_auth.exceptions import OversizedResponseError
from coreason_auth.utils.logger import logger

MAX_RESPONSE_BYTES = 1_000_000


class TransportResponse(BaseModel):
    """
    Status and decoded JSON body of a transport call.

    Attributes:
        status_code (int): The HTTP status code.
        json_body (Any): The decoded JSON body, or None if the body was empty or not JSON.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int
    json_body: Any = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@runtime_checkable
class HTTPTransport(Protocol):
    """POST capability consumed by the OAuth delegate."""

    async def post_form(
        self, url: str, data: Mapping[str, str], headers: Mapping[str, str]
    ) -> TransportResponse:
        """Sends a form-encoded POST and returns status + JSON body."""
        ...


def _parse_json(content: bytes) -> Any:
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


class HttpxTransport:
    """
    `HTTPTransport` backed by an `httpx.AsyncClient`.

    Responses are streamed and capped at `max_response_bytes` to protect against
    oversized bodies. No retries are attempted; `httpx.HTTPError` propagates to the caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_response_bytes: int = MAX_RESPONSE_BYTES,
        keepalive: bool = True,
    ) -> None:
        """
        Initialize the HttpxTransport.

        Args:
            client: External async client (optional). If not provided, one is created and owned by this transport.
            timeout: Timeout in seconds for the internally created client.
            max_response_bytes: Maximum accepted body size.
            keepalive: Whether the internally created client may keep idle connections open.
                Disable it when the transport is driven from several event loops in turn.
        """
        self._internal_client = client is None
        if client is None:
            limits = httpx.Limits() if keepalive else httpx.Limits(max_keepalive_connections=0)
            client = httpx.AsyncClient(timeout=timeout, limits=limits)
        self._client = client
        self.max_response_bytes = max_response_bytes

        if self._internal_client:
            # Instrument the client for distributed tracing
            HTTPXClientInstrumentor().instrument_client(self._client)

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the underlying client if this transport created it."""
        if self._internal_client:
            await self._client.aclose()

    async def post_form(
        self, url: str, data: Mapping[str, str], headers: Mapping[str, str]
    ) -> TransportResponse:
        """
        Sends a form-encoded POST.

        Args:
            url: Target URL.
            data: Form fields.
            headers: Request headers.

        Returns:
            TransportResponse: Status code and decoded JSON body (None if not JSON).

        Raises:
            OversizedResponseError: If the body exceeds `max_response_bytes`.
            httpx.HTTPError: On network failure or timeout.
        """
        async with self._client.stream("POST", url, data=dict(data), headers=dict(headers)) as response:
            content_length = response.headers.get("Content-Length")
            if content_length:
                try:
                    if int(content_length) > self.max_response_bytes:
                        raise OversizedResponseError("Response too large")
                except ValueError:
                    pass

            content = bytearray()
            async for chunk in response.aiter_bytes():
                content.extend(chunk)
                if len(content) > self.max_response_bytes:
                    raise OversizedResponseError("Response too large")

            status_code = response.status_code

        body = await anyio.to_thread.run_sync(_parse_json, bytes(content)) if content else None
        logger.debug(f"POST {url} -> {status_code}")
        return TransportResponse(status_code=status_code, json_body=body)
