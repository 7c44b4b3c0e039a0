"""
Cross-context cart sync.

Each context (a browser tab, a worker process, a test double) owns one sync
channel on a named topic; a message published on one channel reaches the
subscribers of every *other* channel on that topic.

Two transports:
- SyncChannel over a BroadcastHub: contexts living in one process
- MongoSyncChannel: contexts in separate workers or instances, carried as
  documents in an events collection and received through a change stream

Delivery is best-effort: subscriber failures are logged and dropped.
"""

import asyncio
import logging
import secrets
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from storefront.utils.helpers import get_current_timestamp

logger = logging.getLogger(__name__)

# Published events expire from the collection after this many seconds
EVENT_TTL_SECONDS = 3600


class SyncMessageType(str, Enum):
    """Sync message kinds."""
    CART_UPDATED = "CART_UPDATED"
    CART_CLEARED = "CART_CLEARED"


class SyncMessage(BaseModel):
    """Change notification sent between contexts."""
    type: SyncMessageType
    timestamp: datetime = Field(default_factory=get_current_timestamp)

    @classmethod
    def cart_updated(cls) -> "SyncMessage":
        return cls(type=SyncMessageType.CART_UPDATED)

    @classmethod
    def cart_cleared(cls) -> "SyncMessage":
        return cls(type=SyncMessageType.CART_CLEARED)


Subscriber = Callable[[SyncMessage], None]
Unsubscribe = Callable[[], None]


class SyncChannelClosed(RuntimeError):
    """Publishing on a channel that has been closed."""


class BaseSyncChannel:
    """Subscriber bookkeeping shared by every transport."""

    def __init__(self, name: str):
        self.name = name
        self.closed = False
        self._subscribers: List[Subscriber] = []

    def publish(self, message: SyncMessage) -> None:
        raise NotImplementedError

    def broadcast_cart_update(self) -> None:
        self.publish(SyncMessage.cart_updated())

    def broadcast_cart_clear(self) -> None:
        self.publish(SyncMessage.cart_cleared())

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """
        Register a callback for messages from other contexts.

        Returns:
            A function that removes the subscription; calling it twice is harmless
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def deliver(self, message: SyncMessage) -> None:
        for callback in list(self._subscribers):
            try:
                callback(message)
            except Exception as e:
                logger.warning(f"Sync subscriber on {self.name!r} failed for {message.type.value}: {e}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._subscribers.clear()
        self._on_close()

    def _on_close(self) -> None:
        pass

    async def wait_closed(self) -> None:
        """Wait for background work cancelled by close() to finish."""

    def _check_open(self) -> None:
        if self.closed:
            raise SyncChannelClosed(f"Sync channel {self.name!r} is closed")


class SyncChannel(BaseSyncChannel):
    """One in-process context's endpoint on a broadcast topic."""

    def __init__(self, hub: "BroadcastHub", name: str):
        super().__init__(name)
        self.hub = hub

    def publish(self, message: SyncMessage) -> None:
        """Send a message to every other channel on this topic."""
        self._check_open()
        self.hub.dispatch(self, message)

    def _on_close(self) -> None:
        self.hub.detach(self)


class BroadcastHub:
    """In-process registry of broadcast topics."""

    def __init__(self):
        self._topics: Dict[str, List[SyncChannel]] = {}

    def open_channel(self, name: str) -> SyncChannel:
        channel = SyncChannel(self, name)
        self._topics.setdefault(name, []).append(channel)
        return channel

    def detach(self, channel: SyncChannel) -> None:
        channels = self._topics.get(channel.name, [])
        if channel in channels:
            channels.remove(channel)

    def dispatch(self, sender: SyncChannel, message: SyncMessage) -> None:
        for channel in list(self._topics.get(sender.name, [])):
            if channel is not sender:
                channel.deliver(message)


class MongoSyncChannel(BaseSyncChannel):
    """
    Sync channel shared between processes through a MongoDB events collection.

    publish() inserts an event document tagged with this channel's origin id;
    a background change stream on the same collection delivers every insert
    on the topic that came from another origin. Change streams need a
    replica set or sharded cluster.
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        name: str,
        retry_delay: float = 5.0
    ):
        super().__init__(name)
        self.collection = collection
        self.origin = secrets.token_hex(8)
        self.retry_delay = retry_delay
        self._watch_task: Optional[asyncio.Task] = None
        self._publish_tasks: Set[asyncio.Task] = set()

    def start(self) -> None:
        """Start listening. Must be called from a running event loop."""
        self._check_open()
        if self._watch_task is None:
            self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    def publish(self, message: SyncMessage) -> None:
        """Queue an event insert; the write happens in the background."""
        self._check_open()
        document = {
            "topic": self.name,
            "type": message.type.value,
            "timestamp": message.timestamp,
            "origin": self.origin,
        }
        task = asyncio.get_running_loop().create_task(self._insert(document))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_tasks.discard)

    async def flush(self) -> None:
        """Wait for queued publishes to be written."""
        while self._publish_tasks:
            await asyncio.gather(*list(self._publish_tasks), return_exceptions=True)

    async def _insert(self, document: dict) -> None:
        try:
            await self.collection.insert_one(document)
        except PyMongoError as e:
            logger.warning(f"Failed to publish {document['type']} on {self.name!r}: {e}")

    async def _watch(self) -> None:
        pipeline = [{"$match": {"operationType": "insert", "fullDocument.topic": self.name}}]
        while not self.closed:
            try:
                await self.collection.create_index("timestamp", expireAfterSeconds=EVENT_TTL_SECONDS)
                async with self.collection.watch(pipeline) as stream:
                    async for change in stream:
                        self._handle_change(change)
            except PyMongoError as e:
                logger.error(f"Sync change stream on {self.name!r} failed: {e}")
            if not self.closed:
                await asyncio.sleep(self.retry_delay)

    def _handle_change(self, change: dict) -> None:
        document = change.get("fullDocument") or {}
        if document.get("origin") == self.origin:
            return
        try:
            message = SyncMessage(type=document["type"], timestamp=document["timestamp"])
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed sync event on {self.name!r}: {e}")
            return
        self.deliver(message)

    def _on_close(self) -> None:
        if self._watch_task:
            self._watch_task.cancel()
        for task in self._publish_tasks:
            task.cancel()

    async def wait_closed(self) -> None:
        tasks = list(self._publish_tasks)
        if self._watch_task:
            tasks.append(self._watch_task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
