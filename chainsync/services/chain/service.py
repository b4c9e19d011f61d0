"""
Chain sync service - Main coordinator.

This module provides the ChainSyncService class that wires the client
together and delegates to specialized components:
- ConnectionBootstrap: environment session or self-provisioned identity
- GameStateServiceMixin: typed game-state operations
- NotificationListener: new-block handling and outward events
- QuestJournal: load-then-save quest updates
- BackgroundTasks: fire-and-forget writes with logged failures

Status and events are published on the EventBus; nothing here talks to a
user interface directly.
"""

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import asdict, dataclass
from typing import Any

from loguru import logger

from chainsync.config.constants import TOPIC_STATUS
from chainsync.config.settings import Settings
from chainsync.services.chain.bootstrap import ConnectionBootstrap
from chainsync.services.chain.codec import RequestCodec
from chainsync.services.chain.environment import NodeServiceEnvironment
from chainsync.services.chain.facade_helpers import GameStateServiceMixin
from chainsync.services.chain.faucet import FaucetClient
from chainsync.services.chain.identity import IdentityProvisioner, ProvisionedIdentity
from chainsync.services.chain.key_store import KeyStore, build_key_store
from chainsync.services.chain.notifications import EventBus, NotificationListener
from chainsync.services.chain.quest_journal import QuestJournal
from chainsync.services.chain.session import ChainClient, Session
from chainsync.services.chain.transport import GraphQLTransport, Transport
from chainsync.utils.exceptions import BootstrapError
from chainsync.utils.security import mask_chain_id, owner_display
from chainsync.utils.tasks import BackgroundTasks


@dataclass(frozen=True)
class ChainStatus:
    """Snapshot of connectivity for status displays."""

    connected: bool
    chain_id: str | None
    owner: str | None
    owner_display: str
    world_region: str
    via: str | None

    def to_event(self) -> dict[str, Any]:
        return {"topic": TOPIC_STATUS, **asdict(self)}


class ChainSyncService(GameStateServiceMixin):
    """
    Chain-backed game-state synchronization client.

    One logical session per instance. All remote calls are coroutines; no
    worker threads are used.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Transport | None = None,
        environment: Any | None = None,
        key_store: KeyStore | None = None,
        event_bus: EventBus | None = None,
        signer_factory: Callable[[], Any] | None = None,
    ) -> None:
        """
        Initialize chain sync service.

        Args:
            settings: Client settings
            transport: GraphQL transport (defaults to aiohttp)
            environment: Host-provided session to adopt before self-provisioning
            key_store: Signing key storage (defaults from settings)
            event_bus: Bus for outward events (a private one if omitted)
            signer_factory: Creates new signing keys (defaults to random keys)
        """
        self.settings = settings
        self.codec = RequestCodec()
        self.transport = transport or GraphQLTransport(timeout=settings.request_timeout)
        self.event_bus = event_bus or EventBus()
        self.background = BackgroundTasks()

        if environment is None and settings.environment_node_url:
            environment = NodeServiceEnvironment(
                settings.environment_node_url, self.transport, self.codec
            )

        if key_store is None:
            key_store = build_key_store(
                settings.signer_key_path,
                settings.encryption_key,
                environment=settings.environment,
            )

        self.faucet = FaucetClient(settings.faucet_url, self.transport, self.codec)
        self.provisioner = IdentityProvisioner(self.faucet, key_store, signer_factory)
        self.bootstrap = ConnectionBootstrap(
            self.provisioner,
            self._build_client,
            application_id=settings.application_id,
            environment=environment,
        )
        self.listener = NotificationListener(
            self.event_bus,
            self.codec,
            on_new_block=self.refresh_world_region,
            reconnect_attempts=settings.notification_reconnect_attempts,
            reconnect_delay=settings.notification_reconnect_delay,
            on_stream_lost=self._handle_stream_lost,
        )
        self.quests = QuestJournal(self)
        self._world_region: str | None = None

        logger.info(
            f"ChainSyncService initialized\n"
            f"  Application: {settings.application_id or 'Not configured'}\n"
            f"  Faucet: {settings.faucet_url}\n"
            f"  Node service: {settings.node_service_url}\n"
            f"  Host environment: {'yes' if environment is not None else 'no'}\n"
            f"  Signer persistence: {'on' if settings.persists_signer else 'off'}"
        )

    # ========== Status ==========

    @property
    def session(self) -> Session | None:
        return self.bootstrap.session

    @property
    def is_connected(self) -> bool:
        session = self.session
        return session is not None and session.is_connected

    @property
    def chain_id(self) -> str | None:
        return self.session.session_id if self.session else None

    @property
    def owner(self) -> str | None:
        return self.session.owner_address if self.session else None

    @property
    def world_region(self) -> str:
        """Last successfully fetched region, or the configured default."""
        return self._world_region or self.settings.default_world_region

    def status(self) -> ChainStatus:
        session = self.session
        connected = self.is_connected
        return ChainStatus(
            connected=connected,
            chain_id=self.chain_id,
            owner=self.owner,
            owner_display=owner_display(self.owner),
            world_region=self.world_region,
            via=session.state.via.value if connected else None,
        )

    async def publish_status(self) -> None:
        await self.event_bus.publish(self.status().to_event())

    # ========== Lifecycle ==========

    def _build_client(self, identity: ProvisionedIdentity) -> ChainClient:
        return ChainClient(
            wallet=identity.wallet,
            signer=identity.signer,
            chain_id=identity.chain_id,
            node_url=self.settings.node_service_url,
            transport=self.transport,
            codec=self.codec,
        )

    async def connect(self) -> Session:
        """
        Connect, sharing any bootstrap already in flight.

        Raises:
            BootstrapError: If both connection strategies fail
        """
        return await self.bootstrap.connect()

    async def start(self) -> bool:
        """
        Connect and start background listening. Never raises on failure.

        Returns:
            True if connected
        """
        try:
            session = await self.connect()
        except BootstrapError as e:
            logger.error(f"Chain sync unavailable, continuing without it: {e.cause}")
            await self.publish_status()
            return False

        await self.refresh_world_region()
        await self.publish_status()
        self.listener.start(session)
        return True

    async def refresh_world_region(self) -> str:
        """
        Re-read the world region, keeping the previous value on failure.

        Returns:
            Current world region
        """
        session = self.session
        if session is None or session.application is None:
            return self.world_region

        region = await self.get_world_region()
        if region is not None:
            self._world_region = region
        return self.world_region

    async def _handle_stream_lost(self) -> None:
        logger.error(
            f"Lost notifications for chain {mask_chain_id(self.chain_id)}; "
            f"session disconnected"
        )
        self.bootstrap.reset()
        await self.publish_status()

    def run_in_background(
        self, coro: Coroutine[Any, Any, Any], name: str
    ) -> asyncio.Task:
        """
        Run an operation without awaiting it. Failures are logged.

        Args:
            coro: Operation coroutine, e.g. ``service.save_quests(...)``
            name: Operation name for logging
        """
        return self.background.spawn(coro, name)

    async def disconnect(self) -> None:
        """Stop listening and tear down the session."""
        await self.listener.stop()
        if self.session is not None:
            self.bootstrap.reset()
            await self.publish_status()

    async def close(self) -> None:
        """Flush background writes and release network resources."""
        await self.background.drain()
        await self.disconnect()
        await self.transport.close()
