"""
Chain notifications and outward events.

NotificationListener consumes the session's push notifications one at a
time, in arrival order. On every new block it refreshes dependent state and
publishes a ``chain.newBlock`` event on the EventBus for collaborators such
as the UI.
"""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from loguru import logger

from chainsync.config.constants import NEW_BLOCK_REASON, TOPIC_NEW_BLOCK
from chainsync.services.chain.codec import RequestCodec
from chainsync.services.chain.session import Session
from chainsync.utils.exceptions import (
    DecodeError,
    NotConnectedError,
    RemoteApplicationError,
    TransportError,
)


EventHandler = Callable[[dict[str, Any]], Any]

# Topic matching every event
ALL_TOPICS = "*"


class EventBus:
    """Topic-based publish/subscribe for events leaving the client."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        """
        Register a handler for a topic.

        Args:
            topic: Event topic, or "*" for every event
            handler: Sync or async callable receiving the event dict
        """
        self._handlers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: dict[str, Any]) -> None:
        """
        Deliver an event to its subscribers in registration order.

        A failing handler is logged and does not affect the others.
        """
        topic = event.get("topic")
        handlers = list(self._handlers.get(topic, ())) + list(self._handlers.get(ALL_TOPICS, ()))
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.opt(exception=e).error(f"Event handler for '{topic}' failed: {e}")


class NotificationListener:
    """
    Subscribes once to a session's notifications.

    If the stream drops it is re-subscribed up to the configured number of
    attempts; after that ``on_stream_lost`` is awaited and listening stops.
    """

    def __init__(
        self,
        event_bus: EventBus,
        codec: RequestCodec,
        on_new_block: Callable[[], Awaitable[Any]],
        reconnect_attempts: int = 0,
        reconnect_delay: float = 0.0,
        on_stream_lost: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        """
        Initialize listener.

        Args:
            event_bus: Bus receiving outward events
            codec: Codec used to decode notification payloads
            on_new_block: Refresh hook run before each newBlock event
            reconnect_attempts: Re-subscriptions allowed after a drop
            reconnect_delay: Delay before each re-subscription in seconds
            on_stream_lost: Called once when re-subscription gives up
        """
        self.event_bus = event_bus
        self.codec = codec
        self.on_new_block = on_new_block
        self.reconnect_attempts = reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.on_stream_lost = on_stream_lost
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, session: Session) -> bool:
        """
        Start listening to a session's notifications.

        Returns:
            True if listening started, False if already running or the
            session offers no notifications
        """
        if self.is_running:
            return False

        source = getattr(session.client, "notifications", None)
        if source is None:
            logger.info("Session offers no notifications; listener not started")
            return False

        self._task = asyncio.create_task(self._listen(source), name="chain-notifications")
        return True

    async def stop(self) -> None:
        """Stop listening."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _listen(self, source: Callable[[], AsyncIterator[dict[str, Any]]]) -> None:
        attempts = 0
        while True:
            try:
                async for payload in source():
                    attempts = 0
                    await self.handle_payload(payload)
                logger.warning("Notification stream ended")
            except (TransportError, DecodeError, NotConnectedError) as e:
                logger.warning(f"Notification stream failed: {e}")
            except Exception as e:
                logger.opt(exception=e).error(f"Notification stream crashed: {e}")

            if attempts >= self.reconnect_attempts:
                logger.error("Notification stream lost; giving up after "
                             f"{self.reconnect_attempts} re-subscription attempts")
                if self.on_stream_lost is not None:
                    await self.on_stream_lost()
                return

            attempts += 1
            logger.info(
                f"Re-subscribing to notifications in {self.reconnect_delay}s "
                f"(attempt {attempts}/{self.reconnect_attempts})"
            )
            await asyncio.sleep(self.reconnect_delay)

    async def handle_payload(self, payload: Any) -> None:
        """Decode one subscription payload and handle its notification."""
        try:
            notification = self.codec.decode(payload).field_value("notifications")
        except (RemoteApplicationError, DecodeError) as e:
            logger.warning(f"Ignoring unusable notification: {e}")
            return
        await self.handle_notification(notification)

    async def handle_notification(self, notification: Any) -> None:
        """React to a decoded notification."""
        reason = notification.get("reason") if isinstance(notification, dict) else None
        block = reason.get(NEW_BLOCK_REASON) if isinstance(reason, dict) else None
        if block is None:
            logger.debug(f"Notification without new block: {notification}")
            return

        logger.debug(f"New block: {block}")
        await self.on_new_block()
        await self.event_bus.publish({"topic": TOPIC_NEW_BLOCK, "block": block})
