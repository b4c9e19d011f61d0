"""
Connection bootstrap.

Finite state machine that yields exactly one Session per run:

    INIT -> TRY_ENVIRONMENT -> CONNECTED
                            -> TRY_SELF_PROVISION -> CONNECTED
                                                  -> FAILED

The environment path is tried first; any failure or absence there falls
through to self-provisioning, which runs at most once per run. Concurrent
callers share the in-flight run.
"""

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from loguru import logger

from chainsync.services.chain.identity import IdentityProvisioner, ProvisionedIdentity
from chainsync.services.chain.session import (
    ConnectionState,
    ConnectionVia,
    Session,
)
from chainsync.utils.exceptions import BootstrapError
from chainsync.utils.security import mask_address, mask_chain_id


class BootstrapState(str, Enum):
    """States of the connection bootstrap."""

    INIT = "init"
    TRY_ENVIRONMENT = "try_environment"
    TRY_SELF_PROVISION = "try_self_provision"
    CONNECTED = "connected"
    FAILED = "failed"


_TRANSITIONS: dict[BootstrapState, frozenset[BootstrapState]] = {
    BootstrapState.INIT: frozenset({BootstrapState.TRY_ENVIRONMENT}),
    BootstrapState.TRY_ENVIRONMENT: frozenset({
        BootstrapState.CONNECTED,
        BootstrapState.TRY_SELF_PROVISION,
    }),
    BootstrapState.TRY_SELF_PROVISION: frozenset({
        BootstrapState.CONNECTED,
        BootstrapState.FAILED,
    }),
    BootstrapState.CONNECTED: frozenset(),
    BootstrapState.FAILED: frozenset(),
}


class ConnectionBootstrap:
    """
    Orchestrates the environment and self-provisioning strategies.

    Never retries on its own. After FAILED, the next connect() starts a new
    run; after CONNECTED, connect() returns the existing session until
    reset() is called.
    """

    def __init__(
        self,
        provisioner: IdentityProvisioner,
        client_factory: Callable[[ProvisionedIdentity], Any],
        application_id: str | None = None,
        environment: Any | None = None,
    ) -> None:
        """
        Initialize bootstrap.

        Args:
            provisioner: Identity provisioner for the fallback path
            client_factory: Builds a chain client from a provisioned identity
            application_id: Application to resolve, None to skip resolution
            environment: Host-provided session, if any
        """
        self.provisioner = provisioner
        self.client_factory = client_factory
        self.application_id = application_id
        self.environment = environment

        self._state = BootstrapState.INIT
        self._session: Session | None = None
        self._last_error: BaseException | None = None
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> BootstrapState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def last_error(self) -> BaseException | None:
        """Cause of the most recent FAILED outcome."""
        return self._last_error

    @property
    def connection_state(self) -> ConnectionState:
        if self._session is None:
            return ConnectionState.disconnected()
        return self._session.state

    async def connect(self) -> Session:
        """
        Run the bootstrap, or join the run already in flight.

        Returns:
            Connected session

        Raises:
            BootstrapError: If the run ends in FAILED
        """
        if self._state is BootstrapState.CONNECTED and self._session is not None:
            return self._session

        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

        return await asyncio.shield(self._task)

    def reset(self) -> None:
        """Tear down the current session so the next connect() starts over."""
        if self._task is not None and not self._task.done():
            raise RuntimeError("Cannot reset while a bootstrap is in flight")
        if self._session is not None:
            self._session.teardown()
        self._session = None
        self._state = BootstrapState.INIT

    def _transition(self, new_state: BootstrapState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Illegal bootstrap transition {self._state.value} -> {new_state.value}"
            )
        logger.debug(f"Bootstrap: {self._state.value} -> {new_state.value}")
        self._state = new_state

    async def _run(self) -> Session:
        self._state = BootstrapState.INIT
        self._session = None
        self._last_error = None

        self._transition(BootstrapState.TRY_ENVIRONMENT)
        session = await self._try_environment()

        if session is None:
            self._transition(BootstrapState.TRY_SELF_PROVISION)
            try:
                session = await self._try_self_provision()
            except Exception as e:
                self._last_error = e
                self._transition(BootstrapState.FAILED)
                logger.error(f"Connection bootstrap failed: {e}")
                raise BootstrapError(e) from e

        self._session = session
        self._transition(BootstrapState.CONNECTED)
        logger.success(
            f"Connected via {session.state.via.value}: "
            f"chain {mask_chain_id(session.session_id)}, "
            f"owner {mask_address(session.owner_address)}, "
            f"application {session.application.application_id if session.application else 'none'}"
        )
        return session

    async def _try_environment(self) -> Session | None:
        if self.environment is None:
            logger.debug("No host environment session available")
            return None
        if not self.application_id:
            logger.info("No application ID configured; skipping host environment")
            return None

        try:
            initialize = getattr(self.environment, "initialize", None)
            if initialize is not None:
                await initialize()
            handle = await self.environment.application(self.application_id)
        except Exception as e:
            logger.warning(f"Could not use host environment, falling back to self-provisioning: {e}")
            return None

        chain_id = getattr(self.environment, "chain_id", None) or getattr(handle, "chain_id", None)
        return Session(
            session_id=chain_id,
            owner_address=getattr(self.environment, "owner", None),
            signing_key=None,
            application=handle,
            state=ConnectionState.connected_via(ConnectionVia.ENVIRONMENT),
            client=self.environment,
        )

    async def _try_self_provision(self) -> Session:
        identity = await self.provisioner.provision()
        client = self.client_factory(identity)

        handle = None
        if self.application_id:
            handle = await client.application(self.application_id)
        else:
            logger.warning("No application ID configured; game operations are unavailable")

        return Session(
            session_id=identity.chain_id,
            owner_address=identity.owner_address,
            signing_key=identity.signer,
            application=handle,
            state=ConnectionState.connected_via(ConnectionVia.SELF_PROVISIONED),
            client=client,
        )
