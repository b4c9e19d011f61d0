"""
GraphQL transport over HTTP and WebSocket.

Owns the aiohttp session used for every remote call. It knows nothing about
operations or payload semantics: requests go out as ``{"query": body}`` and
raw response text comes back for the codec to interpret.
"""

import json
import uuid
from collections.abc import AsyncIterator
from typing import Any, Protocol

import aiohttp
from loguru import logger

from chainsync.config.constants import GRAPHQL_WS_PROTOCOL, HTTP_SUCCESS_STATUSES
from chainsync.utils.exceptions import DecodeError, TransportError


class Transport(Protocol):
    """Interface the rest of the client expects from a transport."""

    async def execute(self, url: str, body: str) -> str: ...

    def subscribe(self, url: str, body: str) -> AsyncIterator[dict[str, Any]]: ...

    async def close(self) -> None: ...


class GraphQLTransport:
    """
    aiohttp-based GraphQL transport.

    Handles:
    - Lazy creation and reuse of the HTTP session
    - Mapping network failures to TransportError
    - graphql-transport-ws subscriptions
    """

    def __init__(self, timeout: float | None = None) -> None:
        """
        Initialize transport.

        Args:
            timeout: Total per-request timeout in seconds, None for no limit
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def execute(self, url: str, body: str) -> str:
        """
        POST a GraphQL document and return the raw response text.

        4xx replies with a JSON body are returned as-is because GraphQL
        servers use them to report request errors in the ``errors`` list.

        Args:
            url: Endpoint URL
            body: GraphQL document

        Returns:
            Raw response text

        Raises:
            TransportError: On network failure, timeout or unusable HTTP status
        """
        try:
            session = await self._get_session()
            async with session.post(
                url,
                json={"query": body},
                headers={"Content-Type": "application/json"},
            ) as response:
                text = await response.text()
                if response.status in HTTP_SUCCESS_STATUSES:
                    return text
                if 400 <= response.status < 500 and response.content_type == "application/json":
                    logger.debug(f"GraphQL endpoint answered HTTP {response.status}: {text[:200]}")
                    return text
                raise TransportError(
                    f"HTTP {response.status} from {url}", status=response.status
                )
        except aiohttp.ClientError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        except TimeoutError as e:
            raise TransportError(f"Request to {url} timed out") from e

    async def subscribe(self, url: str, body: str) -> AsyncIterator[dict[str, Any]]:
        """
        Run a GraphQL subscription and yield each ``next`` payload.

        Args:
            url: WebSocket endpoint URL
            body: GraphQL subscription document

        Yields:
            Payload of every ``next`` frame (a GraphQL response object)

        Raises:
            TransportError: If the socket fails or closes unexpectedly
            DecodeError: If a frame is not valid JSON
        """
        session = await self._get_session()
        subscription_id = uuid.uuid4().hex
        try:
            async with session.ws_connect(url, protocols=(GRAPHQL_WS_PROTOCOL,)) as ws:
                await ws.send_json({"type": "connection_init", "payload": {}})
                try:
                    ack = await ws.receive_json()
                except TypeError as e:
                    # Closed or non-text frame instead of the ack
                    raise TransportError(f"Subscription handshake with {url} failed: {e}") from e
                except ValueError as e:
                    raise DecodeError(f"Invalid handshake frame from {url}: {e}") from e
                if not isinstance(ack, dict) or ack.get("type") != "connection_ack":
                    raise TransportError(f"Subscription handshake rejected by {url}: {ack}")

                await ws.send_json({
                    "id": subscription_id,
                    "type": "subscribe",
                    "payload": {"query": body},
                })
                logger.debug(f"Subscribed to {url} ({subscription_id})")

                async for message in ws:
                    if message.type != aiohttp.WSMsgType.TEXT:
                        break
                    try:
                        frame = json.loads(message.data)
                    except json.JSONDecodeError as e:
                        raise DecodeError(f"Invalid subscription frame: {e}") from e

                    frame_type = frame.get("type")
                    if frame_type == "next":
                        yield frame.get("payload") or {}
                    elif frame_type == "error":
                        # Terminal for this subscription; surfaced as a regular payload
                        yield {"data": None, "errors": frame.get("payload") or []}
                        return
                    elif frame_type == "complete":
                        return
                    elif frame_type == "ping":
                        await ws.send_json({"type": "pong"})
        except aiohttp.ClientError as e:
            raise TransportError(f"Subscription to {url} failed: {e}") from e

        raise TransportError(f"Subscription stream to {url} closed")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
