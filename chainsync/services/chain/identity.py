"""
Identity provisioning.

Builds a fresh chain identity through the faucet: wallet, signing key,
owner address and a claimed chain. Holds no state between calls.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any

from eth_account import Account
from loguru import logger

from chainsync.services.chain.faucet import FaucetClient, Wallet
from chainsync.services.chain.key_store import EphemeralKeyStore, KeyStore
from chainsync.utils.exceptions import ProvisioningError
from chainsync.utils.security import mask_address, mask_chain_id


class ProvisioningStage(str, Enum):
    """Steps of identity provisioning, in execution order."""

    WALLET = "wallet"
    SIGNER = "signer"
    ADDRESS = "address"
    CLAIM = "claim"


@dataclass(frozen=True)
class ProvisionedIdentity:
    """Result of a successful provisioning run."""

    wallet: Wallet
    signer: Any
    owner_address: str
    chain_id: str


@contextmanager
def _stage(stage: ProvisioningStage) -> Iterator[None]:
    """Wrap any failure inside a stage into ProvisioningError."""
    try:
        yield
    except ProvisioningError:
        raise
    except Exception as e:
        logger.error(f"Identity provisioning failed at {stage.value}: {e}")
        raise ProvisioningError(stage.value, e) from e


class IdentityProvisioner:
    """
    Creates a wallet, signer and claimed chain via the faucet.

    The signing key comes from the key store when it has one; otherwise a new
    random key is generated and handed to the key store.
    """

    def __init__(
        self,
        faucet: FaucetClient,
        key_store: KeyStore | None = None,
        signer_factory: Callable[[], Any] | None = None,
    ) -> None:
        """
        Initialize provisioner.

        Args:
            faucet: Faucet client
            key_store: Where signing keys are loaded from and saved to
            signer_factory: Creates a new signer (defaults to a random key)
        """
        self.faucet = faucet
        self.key_store = key_store or EphemeralKeyStore()
        self.signer_factory = signer_factory or Account.create

    async def provision(self) -> ProvisionedIdentity:
        """
        Run all provisioning stages.

        Returns:
            Provisioned identity

        Raises:
            ProvisioningError: With the failing stage and its cause
        """
        with _stage(ProvisioningStage.WALLET):
            wallet = await self.faucet.create_wallet()

        with _stage(ProvisioningStage.SIGNER):
            signer = self.key_store.load()
            if signer is None:
                signer = self.signer_factory()
                self.key_store.save(signer)

        with _stage(ProvisioningStage.ADDRESS):
            owner_address = signer.address
            if not isinstance(owner_address, str) or not owner_address:
                raise ValueError(f"Signer produced no usable address: {owner_address!r}")

        with _stage(ProvisioningStage.CLAIM):
            chain_id = await self.faucet.claim_chain(wallet, owner_address)

        logger.success(
            f"Identity provisioned: owner {mask_address(owner_address)}, "
            f"chain {mask_chain_id(chain_id)}"
        )
        return ProvisionedIdentity(
            wallet=wallet,
            signer=signer,
            owner_address=owner_address,
            chain_id=chain_id,
        )
