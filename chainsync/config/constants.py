"""
Application constants.

Centralized constants for the chain synchronization client.
"""

# ========================================================================
# TRANSPORT CONSTANTS
# ========================================================================

# GraphQL over WebSocket sub-protocol used by the node service
GRAPHQL_WS_PROTOCOL = "graphql-transport-ws"

# Path of the node service subscription endpoint
NODE_SERVICE_WS_PATH = "/ws"

# HTTP statuses accepted as a well-formed GraphQL reply
HTTP_SUCCESS_STATUSES = frozenset({200})

# ========================================================================
# NOTIFICATION CONSTANTS
# ========================================================================

NOTIFICATION_RECONNECT_ATTEMPTS = 10  # Maximum re-subscription attempts
NOTIFICATION_RECONNECT_DELAY = 5.0  # Delay between re-subscriptions in seconds

# Key of the new-block reason inside a chain notification
NEW_BLOCK_REASON = "NewBlock"

# ========================================================================
# EVENT TOPICS
# ========================================================================

TOPIC_NEW_BLOCK = "chain.newBlock"
TOPIC_STATUS = "chain.status"

# ========================================================================
# GAME DEFAULTS
# ========================================================================

DEFAULT_WORLD_REGION = "world1"
DEFAULT_FAUCET_URL = "http://localhost:8080"
DEFAULT_NODE_SERVICE_URL = "http://localhost:8080"

# Characters shown from the owner address in status output
OWNER_DISPLAY_CHARS = 8
