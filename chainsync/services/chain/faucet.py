"""
Faucet client.

The faucet is an external provisioning service that hands out the genesis
configuration needed to build a wallet and claims new chains for an owner.
"""

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from chainsync.services.chain.codec import RequestCodec, RequestKind
from chainsync.services.chain.transport import Transport
from chainsync.utils.exceptions import DecodeError
from chainsync.utils.security import mask_address, mask_chain_id


@dataclass
class Wallet:
    """Local wallet built from the faucet's genesis configuration."""

    faucet_url: str
    genesis_config: Any
    chains: dict[str, str] = field(default_factory=dict)  # chain_id -> owner
    default_chain: str | None = None

    def assign(self, chain_id: str, owner: str) -> None:
        """Record a claimed chain and make it the default."""
        self.chains[chain_id] = owner
        self.default_chain = chain_id


class FaucetClient:
    """GraphQL client for the faucet service."""

    def __init__(self, url: str, transport: Transport, codec: RequestCodec) -> None:
        """
        Initialize faucet client.

        Args:
            url: Faucet GraphQL endpoint
            transport: Transport used for requests
            codec: Request codec
        """
        self.url = url
        self.transport = transport
        self.codec = codec

    async def create_wallet(self) -> Wallet:
        """
        Create a wallet from the faucet's genesis configuration.

        Returns:
            New wallet with no chains

        Raises:
            TransportError, RemoteApplicationError, DecodeError
        """
        request = self.codec.encode("genesisConfig", RequestKind.QUERY)
        raw = await self.transport.execute(self.url, request.body)
        genesis_config = self.codec.decode(raw).field_value("genesisConfig")
        if genesis_config is None:
            raise DecodeError("Faucet returned no genesis configuration")
        logger.debug(f"Wallet created from faucet {self.url}")
        return Wallet(faucet_url=self.url, genesis_config=genesis_config)

    async def claim_chain(self, wallet: Wallet, owner: str) -> str:
        """
        Claim a new chain for an owner and record it in the wallet.

        Args:
            wallet: Wallet that will hold the chain
            owner: Owner address the chain is bound to

        Returns:
            Claimed chain ID

        Raises:
            TransportError, RemoteApplicationError, DecodeError
        """
        request = self.codec.encode("claim", RequestKind.MUTATION, {"owner": owner})
        raw = await self.transport.execute(self.url, request.body)
        outcome = self.codec.decode(raw).field_value("claim")

        chain_id = _extract_chain_id(outcome)
        wallet.assign(chain_id, owner)
        logger.info(
            f"Claimed chain {mask_chain_id(chain_id)} for owner {mask_address(owner)}"
        )
        return chain_id


def _extract_chain_id(outcome: Any) -> str:
    # Faucet versions answer either with a bare chain ID or a description object
    if isinstance(outcome, str) and outcome:
        return outcome
    if isinstance(outcome, dict):
        for key in ("chainId", "id"):
            value = outcome.get(key)
            if isinstance(value, str) and value:
                return value
    raise DecodeError(f"Faucet claim returned no chain ID: {outcome!r}")
