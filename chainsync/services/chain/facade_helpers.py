"""
Chain sync service - Game-state operations mixin.

This module provides GameStateServiceMixin with the typed persistence
operations of the client:
- Player state (save, load)
- Inventory and quests (save, load)
- Cross-chain player transfer
- Battle records (record, get one, list per player)
- Guilds (join, get, player's guild)
- World region lookup
- Achievements (submit, hub queries)

Every operation issues exactly one query or mutation through the request
codec, never retries and never caches. Failures of any kind are logged and
turned into the operation's failure value (False or None) so a persistence
problem never takes down the game.
"""

import json
from collections.abc import Callable, Iterable, Mapping
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from chainsync.models.game_state import (
    BattleRecord,
    Guild,
    PlayerAchievement,
    PlayerState,
)
from chainsync.services.chain.codec import RequestCodec, RequestKind
from chainsync.services.chain.session import ApplicationHandle, Session
from chainsync.utils.exceptions import (
    ChainSyncError,
    DecodeError,
    EncodeError,
    NotConnectedError,
    RemoteApplicationError,
    is_retryable,
)


M = TypeVar("M", bound=BaseModel)


def best_effort(action: str, default: Any = None) -> Callable[..., Any]:
    """
    Decorator turning operation failures into a logged failure value.

    Usage:
        @best_effort("save inventory", default=False)
        async def save_inventory(self, player_id, inventory): ...

    Args:
        action: Human-readable action for log messages
        default: Value returned on any failure
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except NotConnectedError:
                logger.warning(f"Not connected to chain, cannot {action}")
            except RemoteApplicationError as e:
                logger.error(f"Remote application rejected {action}: {e.messages}")
            except (DecodeError, ValidationError) as e:
                logger.error(f"Malformed response while trying to {action}: {e}")
            except EncodeError as e:
                logger.error(f"Invalid arguments to {action}: {e}")
            except ChainSyncError as e:
                if is_retryable(e):
                    logger.warning(f"Transient failure trying to {action}: {e}")
                else:
                    logger.error(f"Error trying to {action}: {e}")
            except Exception as e:
                logger.opt(exception=e).error(f"Unexpected error trying to {action}: {e}")
            return default
        return wrapper
    return decorator


def _as_model(model: type[M], value: M | Mapping[str, Any]) -> M:
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise EncodeError(f"Invalid {model.__name__}: {e}") from e


def _as_records(name: str, value: Any) -> list[Any]:
    if value is None or isinstance(value, (str, bytes, Mapping)):
        raise EncodeError(f"'{name}' must be a sequence of records, got {type(value).__name__}")
    try:
        return list(value)
    except TypeError as e:
        raise EncodeError(f"'{name}' is not iterable: {e}") from e


def _as_list(name: str, value: Any) -> list[Any] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise DecodeError(f"Expected '{name}' to be a list, got {type(value).__name__}")
    return value


class GameStateServiceMixin:
    """
    Mixin class with the game-state persistence operations.

    Requires the host class to provide ``codec`` (RequestCodec) and
    ``session`` (Session or None).
    """

    codec: RequestCodec
    session: Session | None

    # ========== Request plumbing ==========

    def _require_application(self) -> ApplicationHandle:
        session = self.session
        if session is None or not session.is_connected:
            raise NotConnectedError("No connected session")
        if session.application is None:
            raise NotConnectedError("No application handle resolved")
        return session.application

    async def _resolve_application(self, application_id: str) -> ApplicationHandle:
        session = self.session
        if session is None or not session.is_connected or session.client is None:
            raise NotConnectedError("No connected session")
        return await session.client.application(application_id)

    async def _execute(
        self,
        operation: str,
        kind: RequestKind,
        arguments: Mapping[str, Any] | None = None,
        application: ApplicationHandle | None = None,
    ) -> Any:
        """
        Send one operation and return its data field.

        Raises:
            NotConnectedError: Before any request when there is no application
            EncodeError, TransportError, RemoteApplicationError, DecodeError
        """
        handle = application or self._require_application()
        request = self.codec.encode(operation, kind, arguments)
        raw = await handle.execute(request)
        return self.codec.decode(raw).field_value(operation)

    # ========== Player State ==========

    @best_effort("save player state", default=False)
    async def save_player_state(
        self, player_id: str, state: PlayerState | Mapping[str, Any]
    ) -> bool:
        """
        Save player stats.

        Args:
            player_id: Player identifier
            state: PlayerState or mapping with its fields

        Returns:
            True on success, False otherwise
        """
        player_state = _as_model(PlayerState, state)
        await self._execute(
            "savePlayerState",
            RequestKind.MUTATION,
            {"playerId": player_id, **player_state.to_remote()},
        )
        logger.debug(f"Player state saved for {player_id}")
        return True

    @best_effort("load player state")
    async def load_player_state(self, player_id: str) -> PlayerState | None:
        """
        Load player stats.

        Args:
            player_id: Player identifier

        Returns:
            PlayerState, or None if absent or on failure
        """
        data = await self._execute(
            "playerState", RequestKind.QUERY, {"playerId": player_id}
        )
        if data is None:
            return None
        return PlayerState.model_validate(data)

    # ========== Inventory & Quests ==========

    @best_effort("save inventory", default=False)
    async def save_inventory(self, player_id: str, inventory: Iterable[Any]) -> bool:
        """Overwrite the player's inventory with the given items."""
        items = _as_records("inventory", inventory)
        await self._execute(
            "saveInventory",
            RequestKind.MUTATION,
            {"playerId": player_id, "inventory": items},
        )
        logger.debug(f"Inventory saved for {player_id} ({len(items)} items)")
        return True

    @best_effort("load inventory")
    async def load_inventory(self, player_id: str) -> list[Any] | None:
        """Load the player's inventory items, None if absent or on failure."""
        value = await self._execute(
            "inventory", RequestKind.QUERY, {"playerId": player_id}
        )
        return _as_list("inventory", self.codec.decode_embedded_json(value))

    @best_effort("save quests", default=False)
    async def save_quests(self, player_id: str, quests: Iterable[Any]) -> bool:
        """
        Overwrite the player's quest list.

        This replaces rather than merges. Callers that need to change a single
        quest must load, modify and save; see QuestJournal.
        """
        records = _as_records("quests", quests)
        await self._execute(
            "saveQuests",
            RequestKind.MUTATION,
            {"playerId": player_id, "quests": records},
        )
        logger.debug(f"Quests saved for {player_id} ({len(records)} quests)")
        return True

    async def fetch_quests(self, player_id: str) -> list[Any] | None:
        """
        Load the player's quests, raising on failure.

        Returns:
            Quest list, or None if the player has none stored

        Raises:
            ChainSyncError: On any failure, including NotConnectedError
        """
        value = await self._execute(
            "quests", RequestKind.QUERY, {"playerId": player_id}
        )
        return _as_list("quests", self.codec.decode_embedded_json(value))

    @best_effort("load quests")
    async def load_quests(self, player_id: str) -> list[Any] | None:
        """Load the player's quests, None if absent or on failure."""
        return await self.fetch_quests(player_id)

    # ========== Transfer ==========

    @best_effort("transfer player", default=False)
    async def transfer_player(
        self,
        player_id: str,
        destination_chain: str,
        state: PlayerState | Mapping[str, Any],
        inventory: Iterable[Any],
        quests: Iterable[Any],
        auth_token: str,
    ) -> bool:
        """
        Move a player with its full state to another chain.

        Args:
            player_id: Player identifier
            destination_chain: Chain ID receiving the player
            state: Player stats to carry over
            inventory: Inventory items to carry over
            quests: Quests to carry over
            auth_token: Token authorizing the transfer

        Returns:
            True if the transfer was accepted, False otherwise
        """
        player_state = _as_model(PlayerState, state)
        await self._execute(
            "transferPlayer",
            RequestKind.MUTATION,
            {
                "playerId": player_id,
                "destinationChain": destination_chain,
                **player_state.to_remote(),
                "inventory": _as_records("inventory", inventory),
                "quests": _as_records("quests", quests),
                "authToken": auth_token,
            },
        )
        logger.info(f"Transfer of {player_id} to {destination_chain} initiated")
        return True

    # ========== Battles ==========

    @best_effort("record battle", default=False)
    async def record_battle(self, battle: BattleRecord | Mapping[str, Any]) -> bool:
        """
        Record a battle result.

        The battle timestamp is assigned remotely; any value given here is
        not sent. Duplicate battle IDs are not checked client-side.
        """
        record = _as_model(BattleRecord, battle)
        await self._execute(
            "recordBattle",
            RequestKind.MUTATION,
            {
                "battleId": record.battle_id,
                "playerId": record.player_id,
                "opponent": record.opponent,
                "playerResult": int(record.result),
                "damageDealt": record.damage_dealt,
                "damageTaken": record.damage_taken,
                "experienceGained": record.experience_gained,
            },
        )
        logger.debug(f"Battle {record.battle_id} recorded for {record.player_id}")
        return True

    @best_effort("get battle record")
    async def get_battle_record(self, battle_id: str) -> BattleRecord | None:
        data = await self._execute(
            "battleRecord", RequestKind.QUERY, {"battleId": battle_id}
        )
        if data is None:
            return None
        return BattleRecord.model_validate(data)

    @best_effort("get player battles")
    async def get_player_battles(self, player_id: str) -> list[BattleRecord] | None:
        items = _as_list(
            "playerBattles",
            await self._execute("playerBattles", RequestKind.QUERY, {"playerId": player_id}),
        )
        if items is None:
            return None
        return [BattleRecord.model_validate(item) for item in items]

    # ========== Guilds ==========

    @best_effort("join guild", default=False)
    async def join_guild(self, player_id: str, guild_id: str, chain_id: str) -> bool:
        """Request membership of a guild hosted on the given chain."""
        await self._execute(
            "joinGuild",
            RequestKind.MUTATION,
            {"playerId": player_id, "guildId": guild_id, "chainId": chain_id},
        )
        logger.info(f"Guild join request sent: {player_id} -> {guild_id}")
        return True

    @best_effort("get guild")
    async def get_guild(self, guild_id: str) -> Guild | None:
        data = await self._execute("guild", RequestKind.QUERY, {"guildId": guild_id})
        if data is None:
            return None
        return Guild.model_validate(data)

    @best_effort("get player guild")
    async def get_player_guild(self, player_id: str) -> str | None:
        return await self._execute(
            "playerGuild", RequestKind.QUERY, {"playerId": player_id}
        )

    # ========== World ==========

    @best_effort("get world region")
    async def get_world_region(self) -> str | None:
        """Region identifier of the session's chain."""
        return await self._execute("worldRegion", RequestKind.QUERY)

    # ========== Achievements ==========

    @best_effort("submit achievement", default=False)
    async def submit_achievement(
        self,
        player_id: str,
        achievement_id: str,
        name: str,
        description: str,
        hub_app_id: str,
        timestamp: int,
        metadata: str | Mapping[str, Any] | None = None,
    ) -> bool:
        """
        Submit an achievement for forwarding to the hub application.

        Args:
            player_id: Player identifier
            achievement_id: Achievement identifier
            name: Display name
            description: Display description
            hub_app_id: Hub application receiving the achievement
            timestamp: Time the achievement was earned
            metadata: JSON string, or a value serialized to one

        Returns:
            True on success, False otherwise
        """
        if metadata is None:
            metadata = "{}"
        elif not isinstance(metadata, str):
            try:
                metadata = json.dumps(metadata, separators=(",", ":"))
            except (TypeError, ValueError) as e:
                raise EncodeError(f"Achievement metadata is not JSON-serializable: {e}") from e

        await self._execute(
            "submitAchievement",
            RequestKind.MUTATION,
            {
                "playerId": player_id,
                "achievementId": achievement_id,
                "achievementName": name,
                "achievementDescription": description,
                "hubAppId": hub_app_id,
                "timestamp": timestamp,
                "metadata": metadata,
            },
        )
        logger.info(f"Achievement {achievement_id} submitted for {player_id}")
        return True

    @best_effort("get player achievements")
    async def get_player_achievements(
        self, player_id: str, hub_app_id: str
    ) -> list[PlayerAchievement] | None:
        """Achievements the hub application holds for a player."""
        hub = await self._resolve_application(hub_app_id)
        items = _as_list(
            "playerAchievements",
            await self._execute(
                "playerAchievements",
                RequestKind.QUERY,
                {"playerId": player_id},
                application=hub,
            ),
        )
        if items is None:
            return None
        return [PlayerAchievement.model_validate(item) for item in items]

    @best_effort("register world chain", default=False)
    async def register_world_chain(self, world_region: str, hub_app_id: str) -> bool:
        """Register the session's chain with the hub under a world region."""
        session = self.session
        if session is None or not session.session_id:
            raise NotConnectedError("No chain identity to register")
        hub = await self._resolve_application(hub_app_id)
        await self._execute(
            "registerWorldChain",
            RequestKind.MUTATION,
            {"chainIdStr": session.session_id, "worldRegion": world_region},
            application=hub,
        )
        logger.info(f"World chain registered with hub as {world_region}")
        return True
