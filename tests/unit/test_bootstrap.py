"""Unit tests for the connection bootstrap state machine."""

import asyncio

import pytest

from chainsync.services.chain.bootstrap import BootstrapState
from chainsync.services.chain.environment import HostEnvironment
from chainsync.services.chain.service import ChainSyncService
from chainsync.services.chain.session import ApplicationHandle, ConnectionVia
from chainsync.utils.exceptions import BootstrapError, ProvisioningError, TransportError


class StaticEnvironment:
    """Host environment double with a fixed chain and owner."""

    def __init__(self, transport, fail=False):
        self.chain_id = "host-chain"
        self.owner = "0xHOST000000"
        self.transport = transport
        self.fail = fail
        self.initialized = 0

    async def initialize(self):
        self.initialized += 1

    async def application(self, application_id):
        if self.fail:
            raise TransportError("host session expired")
        return ApplicationHandle(
            application_id,
            self.chain_id,
            f"http://node.test/chains/{self.chain_id}/applications/{application_id}",
            self.transport,
        )


def make_service(settings, transport, fixed_signer, **kwargs):
    return ChainSyncService(
        settings, transport=transport, signer_factory=lambda: fixed_signer, **kwargs
    )


class TestEnvironmentPath:
    """Adopting a host-provided session."""

    def test_double_satisfies_protocol(self, transport):
        assert isinstance(StaticEnvironment(transport), HostEnvironment)

    @pytest.mark.asyncio
    async def test_environment_session_is_adopted(self, settings, transport, network, fixed_signer):
        environment = StaticEnvironment(transport)
        service = make_service(settings, transport, fixed_signer, environment=environment)

        session = await service.connect()

        assert service.bootstrap.state is BootstrapState.CONNECTED
        assert session.state.via is ConnectionVia.ENVIRONMENT
        assert session.session_id == "host-chain"
        assert session.owner_address == "0xHOST000000"
        assert session.signing_key is None
        assert environment.initialized == 1
        assert network.claims == []

    @pytest.mark.asyncio
    async def test_environment_failure_falls_back_once(
        self, settings, transport, network, fixed_signer
    ):
        service = make_service(
            settings, transport, fixed_signer,
            environment=StaticEnvironment(transport, fail=True),
        )

        session = await service.connect()

        assert session.state.via is ConnectionVia.SELF_PROVISIONED
        assert session.session_id == "chain-7"
        assert session.owner_address == "0xABC"
        assert network.claims == ["0xABC"]

    @pytest.mark.asyncio
    async def test_node_service_default_chain(self, settings, transport, network, fixed_signer, ids):
        network.default_chain = "node-chain"
        env_settings = settings.model_copy(update={"environment_node_url": ids.node_url})
        service = make_service(env_settings, transport, fixed_signer)

        session = await service.connect()

        assert session.state.via is ConnectionVia.ENVIRONMENT
        assert session.session_id == "node-chain"
        assert session.application.url.endswith(f"/chains/node-chain/applications/{ids.game_app}")
        assert network.claims == []

    @pytest.mark.asyncio
    async def test_node_service_without_default_chain(
        self, settings, transport, network, fixed_signer, ids
    ):
        env_settings = settings.model_copy(update={"environment_node_url": ids.node_url})
        service = make_service(env_settings, transport, fixed_signer)

        session = await service.connect()

        assert session.state.via is ConnectionVia.SELF_PROVISIONED
        assert network.claims == ["0xABC"]


class TestSelfProvisionPath:
    """Falling back to a faucet-provisioned identity."""

    @pytest.mark.asyncio
    async def test_self_provisioned_session(self, service, ids):
        session = await service.connect()

        assert service.bootstrap.state is BootstrapState.CONNECTED
        assert session.state.via is ConnectionVia.SELF_PROVISIONED
        assert session.session_id == "chain-7"
        assert session.owner_address == "0xABC"
        assert session.application.application_id == ids.game_app
        assert session.application.chain_id == "chain-7"

    @pytest.mark.asyncio
    async def test_failure_reaches_failed(self, service, transport, network):
        transport.failures["genesisConfig"] = TransportError("faucet down")

        with pytest.raises(BootstrapError) as exc_info:
            await service.connect()

        assert service.bootstrap.state is BootstrapState.FAILED
        assert service.session is None
        assert isinstance(service.bootstrap.last_error, ProvisioningError)
        assert exc_info.value.cause is service.bootstrap.last_error
        assert network.claims == []

    @pytest.mark.asyncio
    async def test_unknown_application_fails(self, settings, transport, fixed_signer):
        bad_settings = settings.model_copy(update={"application_id": "f" * 64})
        service = make_service(bad_settings, transport, fixed_signer)

        with pytest.raises(BootstrapError):
            await service.connect()

        assert service.bootstrap.state is BootstrapState.FAILED

    @pytest.mark.asyncio
    async def test_no_application_configured(self, settings, transport, fixed_signer):
        bare_settings = settings.model_copy(update={"application_id": None})
        service = make_service(bare_settings, transport, fixed_signer)

        session = await service.connect()

        assert service.bootstrap.state is BootstrapState.CONNECTED
        assert session.application is None
        assert await service.get_world_region() is None

    @pytest.mark.asyncio
    async def test_retry_after_failure_starts_new_run(self, service, transport, network):
        transport.failures["genesisConfig"] = TransportError("faucet down")
        with pytest.raises(BootstrapError):
            await service.connect()

        del transport.failures["genesisConfig"]
        session = await service.connect()

        assert service.bootstrap.state is BootstrapState.CONNECTED
        assert session.session_id == "chain-7"
        assert network.claims == ["0xABC"]


class TestSingleFlight:
    """Concurrent connect() callers."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_run(self, service, transport, network):
        gate = asyncio.Event()
        transport.gates["claim"] = gate

        callers = [asyncio.create_task(service.connect()) for _ in range(5)]
        await asyncio.sleep(0.01)
        assert service.bootstrap.state is BootstrapState.TRY_SELF_PROVISION
        gate.set()
        sessions = await asyncio.gather(*callers)

        assert all(session is sessions[0] for session in sessions)
        assert network.claims == ["0xABC"]
        assert transport.operation_calls("genesisConfig") == 1

    @pytest.mark.asyncio
    async def test_connected_returns_same_session(self, service, network):
        first = await service.connect()
        second = await service.connect()

        assert first is second
        assert network.claims == ["0xABC"]

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_run(self, service, transport):
        gate = asyncio.Event()
        transport.gates["claim"] = gate

        impatient = asyncio.create_task(service.connect())
        patient = asyncio.create_task(service.connect())
        await asyncio.sleep(0.01)
        impatient.cancel()
        gate.set()

        session = await patient
        assert session.is_connected
        assert impatient.cancelled()

    @pytest.mark.asyncio
    async def test_reset_while_in_flight_is_rejected(self, service, transport):
        gate = asyncio.Event()
        transport.gates["claim"] = gate
        pending = asyncio.create_task(service.connect())
        await asyncio.sleep(0.01)

        with pytest.raises(RuntimeError):
            service.bootstrap.reset()

        gate.set()
        await pending

    @pytest.mark.asyncio
    async def test_reset_tears_down_session(self, service, network):
        session = await service.connect()

        service.bootstrap.reset()

        assert not session.is_connected
        assert service.bootstrap.state is BootstrapState.INIT
        assert service.session is None

        fresh = await service.connect()
        assert fresh.session_id == "chain-8"
        assert network.claims == ["0xABC", "0xABC"]
