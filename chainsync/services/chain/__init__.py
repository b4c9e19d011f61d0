"""
Chain sync services module.

Provides the chain-backed game-state client through a modular architecture:
transport, request codec, identity provisioning, connection bootstrap,
game-state operations and notifications.
"""

from .bootstrap import BootstrapState, ConnectionBootstrap
from .codec import RemoteRequest, RemoteResponse, RequestCodec, RequestKind
from .notifications import EventBus, NotificationListener
from .service import ChainStatus, ChainSyncService
from .session import ApplicationHandle, ConnectionState, ConnectionVia, Session
from .singleton import get_chain_service, init_chain_service


__all__ = [
    "ApplicationHandle",
    "BootstrapState",
    "ChainStatus",
    "ChainSyncService",
    "ConnectionBootstrap",
    "ConnectionState",
    "ConnectionVia",
    "EventBus",
    "NotificationListener",
    "RemoteRequest",
    "RemoteResponse",
    "RequestCodec",
    "RequestKind",
    "Session",
    "get_chain_service",
    "init_chain_service",
]
