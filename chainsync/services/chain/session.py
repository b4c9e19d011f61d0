"""
Session and application handles.

A Session binds a signing identity to a chain and, once resolved, to the
deployed game application on that chain.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from chainsync.config.constants import NODE_SERVICE_WS_PATH
from chainsync.services.chain.codec import RemoteRequest, RequestCodec, RequestKind
from chainsync.services.chain.faucet import Wallet
from chainsync.services.chain.transport import Transport
from chainsync.utils.exceptions import NotConnectedError
from chainsync.utils.security import mask_chain_id


class ConnectionVia(str, Enum):
    """How a session was obtained."""

    ENVIRONMENT = "environment"
    SELF_PROVISIONED = "self_provisioned"


@dataclass(frozen=True)
class ConnectionState:
    """Disconnected, or connected via one of the bootstrap strategies."""

    connected: bool = False
    via: ConnectionVia | None = None

    @classmethod
    def disconnected(cls) -> "ConnectionState":
        return cls()

    @classmethod
    def connected_via(cls, via: ConnectionVia) -> "ConnectionState":
        return cls(connected=True, via=via)

    def __str__(self) -> str:
        if not self.connected:
            return "Disconnected"
        return f"Connected({self.via.value})"


class ApplicationHandle:
    """Reference to one deployed application on a chain."""

    def __init__(
        self,
        application_id: str,
        chain_id: str | None,
        url: str,
        transport: Transport,
    ) -> None:
        self.application_id = application_id
        self.chain_id = chain_id
        self.url = url
        self.transport = transport

    async def execute(self, request: RemoteRequest) -> str:
        """Send an encoded request to the application and return raw text."""
        return await self.transport.execute(self.url, request.body)

    def __repr__(self) -> str:
        return f"ApplicationHandle({self.application_id!r}, chain={self.chain_id!r})"


def application_url(node_url: str, chain_id: str, application_id: str) -> str:
    """Build the node service URL of an application on a chain."""
    return f"{node_url.rstrip('/')}/chains/{chain_id}/applications/{application_id}"


def subscription_url(node_url: str) -> str:
    """Build the node service WebSocket URL from its HTTP URL."""
    base = node_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return base + NODE_SERVICE_WS_PATH


class NodeServiceBinding:
    """
    Access to applications and notifications of one chain through a node service.

    Shared by self-provisioned clients and host-provided node services.
    """

    def __init__(
        self,
        node_url: str,
        transport: Transport,
        codec: RequestCodec,
        chain_id: str | None = None,
    ) -> None:
        self.node_url = node_url.rstrip("/")
        self.transport = transport
        self.codec = codec
        self.chain_id = chain_id

    async def application(self, application_id: str) -> ApplicationHandle:
        """
        Resolve an application on this chain.

        The application endpoint is probed once so an unknown or unreachable
        application fails here rather than on the first game operation.

        Raises:
            NotConnectedError: If no chain is bound yet
            TransportError, RemoteApplicationError, DecodeError: If the probe fails
        """
        if not self.chain_id:
            raise NotConnectedError("No chain bound; cannot resolve application")

        handle = ApplicationHandle(
            application_id=application_id,
            chain_id=self.chain_id,
            url=application_url(self.node_url, self.chain_id, application_id),
            transport=self.transport,
        )
        probe = self.codec.encode("__typename", RequestKind.QUERY)
        self.codec.decode(await handle.execute(probe)).field_value("__typename")
        logger.info(
            f"Resolved application {application_id} on chain {mask_chain_id(self.chain_id)}"
        )
        return handle

    async def notifications(self) -> AsyncIterator[dict[str, Any]]:
        """Yield raw notification payloads for this chain."""
        if not self.chain_id:
            raise NotConnectedError("No chain bound; cannot subscribe to notifications")

        request = self.codec.encode(
            "notifications", RequestKind.SUBSCRIPTION, {"chainId": self.chain_id}
        )
        async for payload in self.transport.subscribe(
            subscription_url(self.node_url), request.body
        ):
            yield payload


class ChainClient(NodeServiceBinding):
    """Client for a self-provisioned wallet and signer."""

    def __init__(
        self,
        wallet: Wallet,
        signer: Any,
        chain_id: str,
        node_url: str,
        transport: Transport,
        codec: RequestCodec,
    ) -> None:
        super().__init__(node_url, transport, codec, chain_id=chain_id)
        self.wallet = wallet
        self.signer = signer

    @property
    def owner(self) -> str:
        return self.signer.address


@dataclass
class Session:
    """
    Live binding of an identity to a chain.

    Owned by the bootstrap that created it; only teardown() changes it
    afterwards.
    """

    session_id: str | None
    owner_address: str | None
    signing_key: Any | None
    application: ApplicationHandle | None
    state: ConnectionState
    client: Any = None

    @property
    def is_connected(self) -> bool:
        return self.state.connected

    def teardown(self) -> None:
        """Mark the session as disconnected."""
        self.state = ConnectionState.disconnected()
