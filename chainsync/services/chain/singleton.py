"""
Singleton pattern for ChainSyncService.

Provides global access to a single ChainSyncService instance.
"""

from typing import Any

from chainsync.config.settings import Settings, get_settings


_chain_service: Any = None


def get_chain_service():
    """
    Get the singleton chain sync service instance.

    Returns:
        ChainSyncService instance

    Raises:
        RuntimeError: If service not initialized
    """
    if _chain_service is None:
        raise RuntimeError("ChainSyncService not initialized")
    return _chain_service


def init_chain_service(settings: Settings | None = None, **kwargs: Any):
    """
    Initialize the singleton chain sync service instance.

    Args:
        settings: Client settings, loaded from the environment if omitted
        **kwargs: Extra ChainSyncService arguments (transport, environment, ...)

    Returns:
        The new ChainSyncService instance
    """
    global _chain_service
    # Import here to avoid circular dependency
    from chainsync.services.chain.service import ChainSyncService
    _chain_service = ChainSyncService(settings or get_settings(), **kwargs)
    return _chain_service
