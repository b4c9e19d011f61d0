"""Integration tests for the chain sync service against the fake network."""

import asyncio

import pytest

from chainsync.config.constants import TOPIC_NEW_BLOCK, TOPIC_STATUS
from chainsync.models.game_state import BattleResult
from chainsync.services.chain import singleton
from chainsync.services.chain.service import ChainSyncService
from chainsync.services.chain.singleton import get_chain_service, init_chain_service
from chainsync.utils.exceptions import TransportError


PLAYER_STATE = {
    "health": 80, "maxHealth": 100, "strength": 12, "wisdomness": 4,
    "benchpress": 90, "curl": 30, "experience": 2500, "level": 7,
}


class TestGameSession:
    """A full play session from startup to shutdown."""

    @pytest.mark.asyncio
    async def test_startup_publishes_status(self, service, network):
        statuses = []
        service.event_bus.subscribe(TOPIC_STATUS, statuses.append)

        assert await service.start() is True

        assert network.claims == ["0xABC"]
        assert statuses == [{
            "topic": TOPIC_STATUS,
            "connected": True,
            "chain_id": "chain-7",
            "owner": "0xABC",
            "owner_display": "0xABC...",
            "world_region": "world2",
            "via": "self_provisioned",
        }]
        await service.close()

    @pytest.mark.asyncio
    async def test_startup_failure_keeps_game_running(self, service, transport):
        transport.failures["genesisConfig"] = TransportError("faucet down")
        statuses = []
        service.event_bus.subscribe(TOPIC_STATUS, statuses.append)

        assert await service.start() is False

        assert statuses[0]["connected"] is False
        assert statuses[0]["world_region"] == "world1"
        assert await service.save_player_state("p1", PLAYER_STATE) is False
        await service.close()

    @pytest.mark.asyncio
    async def test_play_session(self, service, network, ids):
        await service.start()

        assert await service.save_player_state("hero", PLAYER_STATE)
        assert await service.save_inventory("hero", [{"slot": "weapon", "itemId": "axe"}])
        assert await service.record_battle({
            "battleId": "b1", "playerId": "hero", "opponent": "npc-slime",
            "result": BattleResult.WIN, "damageDealt": 40, "damageTaken": 5,
            "experienceGained": 100,
        })
        add = await service.quests.add_quest("hero", {"id": "slimes", "progress": 0})
        await add
        update = await service.quests.update_quest_progress("hero", "slimes", 10, completed=True)
        await update
        assert await service.join_guild("hero", "knights", "chain-7")
        assert await service.submit_achievement(
            "hero", "first-blood", "First Blood", "Win your first battle",
            ids.hub_app, 1_700_000_000, metadata={"opponent": "npc-slime"},
        )
        assert await service.register_world_chain(service.world_region, ids.hub_app)

        state = await service.load_player_state("hero")
        battle = await service.get_battle_record("b1")
        quests = await service.load_quests("hero")

        assert state.to_remote() == PLAYER_STATE
        assert battle.result == 2
        assert battle.experience_gained == 100
        assert quests == [{"id": "slimes", "progress": 10, "completed": True}]
        assert await service.get_player_guild("hero") == "knights"
        assert network.hub.world_chains == {"chain-7": "world2"}
        await service.close()

    @pytest.mark.asyncio
    async def test_close_flushes_background_writes(self, service, transport, network):
        await service.start()
        gate = asyncio.Event()
        transport.gates["saveQuests"] = gate

        await service.quests.add_quest("hero", {"id": "q1"})
        asyncio.get_running_loop().call_later(0.01, gate.set)
        await service.close()

        assert network.game.quests["hero"] == '[{"id":"q1"}]'
        assert transport.closed


class TestConcurrency:
    """Documented concurrency behaviour."""

    @pytest.mark.asyncio
    async def test_concurrent_quest_adds_can_lose_update(self, connected_service, transport, network):
        gate = asyncio.Event()
        transport.gates["quests"] = gate

        first = asyncio.create_task(connected_service.quests.add_quest("hero", {"id": "a"}))
        second = asyncio.create_task(connected_service.quests.add_quest("hero", {"id": "b"}))
        await asyncio.sleep(0.01)
        gate.set()
        saves = await asyncio.gather(first, second)
        await asyncio.gather(*saves)

        stored = await connected_service.load_quests("hero")
        assert stored in ([{"id": "a"}], [{"id": "b"}])

    @pytest.mark.asyncio
    async def test_slow_refresh_delays_but_keeps_events(self, service, transport, network, new_block):
        await service.start()
        heights = []
        service.event_bus.subscribe(
            TOPIC_NEW_BLOCK, lambda event: heights.append(event["block"]["height"])
        )
        gate = asyncio.Event()
        transport.gates["worldRegion"] = gate

        await transport.notifications.put(new_block(1))
        await transport.notifications.put(new_block(2))
        await asyncio.sleep(0.01)
        assert heights == []

        gate.set()
        for _ in range(100):
            if len(heights) == 2:
                break
            await asyncio.sleep(0.01)

        assert heights == [1, 2]
        await service.close()

    @pytest.mark.asyncio
    async def test_manual_refresh_overlaps_new_block_refresh(
        self, service, transport, network, new_block
    ):
        await service.start()
        blocks = []
        service.event_bus.subscribe(TOPIC_NEW_BLOCK, blocks.append)
        gate = asyncio.Event()
        transport.gates["worldRegion"] = gate
        lookups = transport.operation_calls("worldRegion")

        manual = asyncio.create_task(service.refresh_world_region())
        await transport.notifications.put(new_block(7))
        for _ in range(100):
            if transport.operation_calls("worldRegion") == lookups + 2:
                break
            await asyncio.sleep(0.01)
        assert transport.operation_calls("worldRegion") == lookups + 2
        assert service.world_region == "world2"

        network.game.world_region = "world4"
        gate.set()

        assert await manual == "world4"
        for _ in range(100):
            if blocks:
                break
            await asyncio.sleep(0.01)
        assert [event["block"]["height"] for event in blocks] == [7]
        assert service.world_region == "world4"

        transport.failures["worldRegion"] = TransportError("timeout")
        assert await service.refresh_world_region() == "world4"
        await service.close()

    @pytest.mark.asyncio
    async def test_operations_do_not_wait_for_each_other(self, connected_service, transport):
        gate = asyncio.Event()
        transport.gates["playerState"] = gate

        slow = asyncio.create_task(connected_service.load_player_state("hero"))
        await asyncio.sleep(0)
        region = await connected_service.get_world_region()

        assert region == "world2"
        assert not slow.done()
        gate.set()
        assert await slow is None


class TestSingleton:
    """Tests for the process-wide service accessor."""

    @pytest.fixture(autouse=True)
    def reset_singleton(self):
        singleton._chain_service = None
        yield
        singleton._chain_service = None

    def test_requires_initialization(self):
        with pytest.raises(RuntimeError):
            get_chain_service()

    def test_init_and_get(self, settings, transport):
        service = init_chain_service(settings, transport=transport)

        assert isinstance(service, ChainSyncService)
        assert get_chain_service() is service
