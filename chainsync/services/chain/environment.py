"""
Host-provided sessions.

A hosting process may already run a node service with a wallet and chain.
The bootstrap adopts such an environment before falling back to
self-provisioning.
"""

from typing import Protocol, runtime_checkable

from loguru import logger

from chainsync.services.chain.codec import RequestKind
from chainsync.services.chain.session import ApplicationHandle, NodeServiceBinding
from chainsync.utils.exceptions import NotConnectedError
from chainsync.utils.security import mask_chain_id


@runtime_checkable
class HostEnvironment(Protocol):
    """An initialized session supplied by the host."""

    chain_id: str | None
    owner: str | None

    async def initialize(self) -> None: ...

    async def application(self, application_id: str) -> ApplicationHandle: ...


class NodeServiceEnvironment(NodeServiceBinding):
    """Adopts the default chain of a node service run by the host."""

    owner: str | None = None

    async def initialize(self) -> None:
        """
        Discover the node service's default chain.

        Raises:
            NotConnectedError: If the node service has no default chain
            TransportError, RemoteApplicationError, DecodeError: On query failure
        """
        request = self.codec.encode("chains", RequestKind.QUERY)
        raw = await self.transport.execute(self.node_url, request.body)
        chains = self.codec.decode(raw).field_value("chains") or {}
        default = chains.get("default") if isinstance(chains, dict) else None
        if not default:
            raise NotConnectedError(f"Node service {self.node_url} has no default chain")

        self.chain_id = default
        logger.info(f"Host node service uses chain {mask_chain_id(default)}")
