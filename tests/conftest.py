"""Pytest configuration and shared fixtures for all tests."""

import asyncio
import json
import os
import re
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

# Minimal environment for Settings() created outside fixtures
os.environ.setdefault("CHAINSYNC_ENVIRONMENT", "development")
os.environ.setdefault("CHAINSYNC_FAUCET_URL", "http://faucet.test")
os.environ.setdefault("CHAINSYNC_NODE_SERVICE_URL", "http://node.test")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio

from chainsync.config.settings import Settings
from chainsync.services.chain.service import ChainSyncService


FAUCET_URL = "http://faucet.test"
NODE_URL = "http://node.test"
GAME_APP_ID = "e476187f6ddfeb9d588c7b45d3df334d5501d6499b3f9ad5595cae86cce16a65"
HUB_APP_ID = "a1b2c3d4e5f60718293a4b5c6d7e8f90a1b2c3d4e5f60718293a4b5c6d7e8f9"

_CALL = re.compile(r'^(query|mutation|subscription) \{ (\w+)')
_ARG = re.compile(r'(\w+): ("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?)')
_APP_URL = re.compile(r'^http://node\.test/chains/([^/]+)/applications/([^/]+)$')


def parse_document(body: str) -> tuple[str, str, dict[str, Any]]:
    """Split an encoded GraphQL document into kind, operation and arguments."""
    match = _CALL.match(body)
    assert match, f"Unexpected document: {body}"
    arguments = {name: json.loads(value) for name, value in _ARG.findall(body)}
    return match.group(1), match.group(2), arguments


class FakeGameApp:
    """In-memory stand-in for the game application's GraphQL service."""

    def __init__(self) -> None:
        self.player_states: dict[str, dict] = {}
        self.inventories: dict[str, str] = {}
        self.quests: dict[str, str] = {}
        self.battles: dict[str, dict] = {}
        self.player_battles: dict[str, list[str]] = {}
        self.guilds: dict[str, dict] = {}
        self.player_guilds: dict[str, str] = {}
        self.transfers: list[dict] = []
        self.achievements: list[dict] = []
        self.world_region = "world2"
        self.clock = 1_700_000_000

    def handle(self, name: str, args: dict[str, Any]) -> Any:
        if name == "__typename":
            return "QueryRoot"
        if name == "savePlayerState":
            player_id = args.pop("playerId")
            self.player_states[player_id] = args
            return "hash-save"
        if name == "playerState":
            return self.player_states.get(args["playerId"])
        if name == "saveInventory":
            self.inventories[args["playerId"]] = args["inventory"]
            return "hash-inventory"
        if name == "inventory":
            return self.inventories.get(args["playerId"])
        if name == "saveQuests":
            self.quests[args["playerId"]] = args["quests"]
            return "hash-quests"
        if name == "quests":
            return self.quests.get(args["playerId"])
        if name == "transferPlayer":
            self.transfers.append(args)
            return "hash-transfer"
        if name == "recordBattle":
            self.clock += 1
            record = {
                "battleId": args["battleId"],
                "playerId": args["playerId"],
                "opponent": args["opponent"],
                "result": args["playerResult"],
                "damageDealt": args["damageDealt"],
                "damageTaken": args["damageTaken"],
                "experienceGained": args["experienceGained"],
                "timestamp": self.clock,
            }
            self.battles[args["battleId"]] = record
            self.player_battles.setdefault(args["playerId"], []).append(args["battleId"])
            return "hash-battle"
        if name == "battleRecord":
            return self.battles.get(args["battleId"])
        if name == "playerBattles":
            ids = self.player_battles.get(args["playerId"])
            return None if ids is None else [self.battles[i] for i in ids]
        if name == "joinGuild":
            guild = self.guilds.setdefault(args["guildId"], {
                "id": args["guildId"], "name": args["guildId"].title(),
                "members": [], "resources": 0, "level": 1,
            })
            guild["members"].append(args["playerId"])
            self.player_guilds[args["playerId"]] = args["guildId"]
            return "hash-guild"
        if name == "guild":
            return self.guilds.get(args["guildId"])
        if name == "playerGuild":
            return self.player_guilds.get(args["playerId"])
        if name == "worldRegion":
            return self.world_region
        if name == "submitAchievement":
            self.achievements.append(args)
            return "hash-achievement"
        raise AssertionError(f"Unhandled game operation {name}")


class FakeHubApp:
    """In-memory stand-in for the achievement hub application."""

    def __init__(self) -> None:
        self.achievements: dict[str, list[dict]] = {}
        self.world_chains: dict[str, str] = {}

    def handle(self, name: str, args: dict[str, Any]) -> Any:
        if name == "__typename":
            return "HubQueryRoot"
        if name == "playerAchievements":
            return self.achievements.get(args["playerId"])
        if name == "registerWorldChain":
            self.world_chains[args["chainIdStr"]] = args["worldRegion"]
            return "hash-register"
        raise AssertionError(f"Unhandled hub operation {name}")


class FakeNetwork:
    """Faucet, node service and deployed applications behind one router."""

    def __init__(self) -> None:
        self.game = FakeGameApp()
        self.hub = FakeHubApp()
        self.apps = {GAME_APP_ID: self.game, HUB_APP_ID: self.hub}
        self.genesis_config = {"committee": {"validators": ["validator-1"]}}
        self.next_chain_ids = ["chain-7", "chain-8", "chain-9"]
        self.claims: list[str] = []
        self.default_chain: str | None = None

    def respond(self, url: str, body: str) -> dict[str, Any]:
        kind, name, args = parse_document(body)
        if url == FAUCET_URL:
            if name == "genesisConfig":
                return {"data": {"genesisConfig": self.genesis_config}}
            if name == "claim":
                self.claims.append(args["owner"])
                return {"data": {"claim": {"chainId": self.next_chain_ids.pop(0)}}}
        elif url == NODE_URL and name == "chains":
            return {"data": {"chains": {"default": self.default_chain, "list": []}}}
        else:
            match = _APP_URL.match(url)
            if match and match.group(2) in self.apps:
                return {"data": {name: self.apps[match.group(2)].handle(name, args)}}
            if match:
                return {"data": None, "errors": [{"message": f"unknown application {match.group(2)}"}]}
        raise AssertionError(f"Unrouted request to {url}: {body}")


class FakeTransport:
    """
    Transport double routing requests to a FakeNetwork.

    Supports per-operation overrides, injected failures, gates that hold a
    request until released, and a queue of notification payloads.
    """

    def __init__(self, network: FakeNetwork) -> None:
        self.network = network
        self.calls: list[tuple[str, str]] = []
        self.overrides: dict[str, Any] = {}
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.notifications: asyncio.Queue = asyncio.Queue()
        self.subscriptions: list[tuple[str, str]] = []
        self.closed = False

    def operation_calls(self, operation: str) -> int:
        return sum(1 for _, body in self.calls if parse_document(body)[1] == operation)

    async def execute(self, url: str, body: str) -> str:
        self.calls.append((url, body))
        _, name, _ = parse_document(body)
        if name in self.gates:
            await self.gates[name].wait()
        if name in self.failures:
            raise self.failures[name]
        if name in self.overrides:
            override = self.overrides[name]
            return override if isinstance(override, str) else json.dumps(override)
        return json.dumps(self.network.respond(url, body))

    async def subscribe(self, url: str, body: str):
        self.subscriptions.append((url, body))
        while True:
            item = await self.notifications.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True


def new_block_payload(height: int) -> dict[str, Any]:
    """Subscription payload announcing a new block."""
    return {
        "data": {
            "notifications": {
                "chain_id": "chain-7",
                "reason": {"NewBlock": {"height": height, "hash": f"block-{height}"}},
            }
        }
    }


@pytest.fixture
def network():
    """Fresh fake faucet/node/application network."""
    return FakeNetwork()


@pytest.fixture
def transport(network):
    """Fake transport bound to the fake network."""
    return FakeTransport(network)


@pytest.fixture
def settings():
    """Settings pointing at the fake network."""
    return Settings(
        _env_file=None,
        application_id=GAME_APP_ID,
        faucet_url=FAUCET_URL,
        node_service_url=NODE_URL,
        notification_reconnect_attempts=0,
        notification_reconnect_delay=0,
    )


@pytest.fixture
def fixed_signer():
    """Signer double deriving the owner address 0xABC."""
    return SimpleNamespace(address="0xABC")


@pytest.fixture
def service(settings, transport, fixed_signer):
    """ChainSyncService wired to the fake network."""
    return ChainSyncService(settings, transport=transport, signer_factory=lambda: fixed_signer)


@pytest_asyncio.fixture
async def connected_service(service):
    """Service that has completed its bootstrap over the fake network."""
    await service.connect()
    return service


@pytest.fixture
def new_block():
    """Factory for new-block subscription payloads."""
    return new_block_payload


@pytest.fixture
def ids():
    """Well-known identifiers of the fake network."""
    return SimpleNamespace(
        faucet_url=FAUCET_URL,
        node_url=NODE_URL,
        game_app=GAME_APP_ID,
        hub_app=HUB_APP_ID,
    )
