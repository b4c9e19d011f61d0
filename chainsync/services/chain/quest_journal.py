"""
Quest journal.

Composite quest updates built on load-then-save. These are NOT atomic:
two writers updating the same player concurrently can lose one of the
updates, because the later save overwrites the whole list.
"""

import asyncio
from typing import Any

from loguru import logger

from chainsync.utils.exceptions import ChainSyncError


class QuestJournal:
    """
    Adds and updates quests in a player's stored quest list.

    The save half runs in background: callers are not blocked on it, and its
    failure is logged by the service's background task runner. If the load
    half fails nothing is saved, so stored quests are never replaced by a
    partial list.
    """

    def __init__(self, service: Any) -> None:
        """
        Initialize journal.

        Args:
            service: ChainSyncService providing quest operations
        """
        self.service = service

    async def add_quest(self, player_id: str, quest: dict[str, Any]) -> asyncio.Task | None:
        """
        Append a quest to the player's quest list.

        Args:
            player_id: Player identifier
            quest: Quest record, stored as-is

        Returns:
            Background save task, or None if nothing was saved
        """
        existing = await self._load(player_id)
        if existing is None:
            return None
        return self._save(player_id, [*existing, quest])

    async def update_quest_progress(
        self,
        player_id: str,
        quest_id: str,
        progress: int,
        completed: bool = False,
    ) -> asyncio.Task | None:
        """
        Update progress of one quest, matched by its ``id`` field.

        Returns:
            Background save task, or None if nothing was saved
        """
        existing = await self._load(player_id)
        if existing is None:
            return None

        updated = []
        found = False
        for quest in existing:
            if isinstance(quest, dict) and quest.get("id") == quest_id:
                quest = {**quest, "progress": progress, "completed": completed}
                found = True
            updated.append(quest)

        if not found:
            logger.warning(f"Quest {quest_id} not found for {player_id}; nothing to update")
            return None
        return self._save(player_id, updated)

    async def _load(self, player_id: str) -> list[Any] | None:
        if not self.service.is_connected:
            logger.debug(f"Not connected; quest journal for {player_id} kept local")
            return None
        try:
            return await self.service.fetch_quests(player_id) or []
        except ChainSyncError as e:
            logger.error(f"Could not load quests for {player_id}, skipping save: {e}")
            return None

    def _save(self, player_id: str, quests: list[Any]) -> asyncio.Task:
        return self.service.run_in_background(
            self.service.save_quests(player_id, quests),
            f"save quests for {player_id}",
        )
