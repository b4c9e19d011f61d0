"""
Chain-backed game-state synchronization client.

Connects a game to a ledger-backed application and persists player state,
inventory, quests, battles, guild membership and achievements through
GraphQL queries and mutations.
"""

__version__ = "0.1.0"
