"""
Tests for cross-context sync channels.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock
from pymongo.errors import PyMongoError

from storefront.services.cart_service import CartStore
from storefront.services.sync import MongoSyncChannel, SyncChannelClosed, SyncMessage, SyncMessageType


class FakeChangeStream:
    """Async change stream fed from a queue."""

    def __init__(self, queue):
        self.queue = queue

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def __aiter__(self):
        return self

    async def __anext__(self):
        return await self.queue.get()


class FakeEventCollection:
    """Events collection shared by every context, like one MongoDB deployment."""

    def __init__(self):
        self.documents = []
        self.streams = []
        self.create_index = AsyncMock(return_value="timestamp_1")

    async def insert_one(self, document):
        self.documents.append(dict(document))
        for queue in self.streams:
            queue.put_nowait({"operationType": "insert", "fullDocument": dict(document)})

    def watch(self, pipeline=None):
        queue = asyncio.Queue()
        self.streams.append(queue)
        return FakeChangeStream(queue)


class TestSyncChannel:
    """Test broadcast delivery between channels."""

    def test_other_channels_receive(self, hub):
        sender = hub.open_channel("cart-sync")
        receiver = hub.open_channel("cart-sync")
        received = []
        receiver.subscribe(received.append)

        sender.broadcast_cart_update()

        assert [m.type for m in received] == [SyncMessageType.CART_UPDATED]

    def test_sender_does_not_receive_own_message(self, hub):
        sender = hub.open_channel("cart-sync")
        received = []
        sender.subscribe(received.append)

        sender.broadcast_cart_clear()

        assert received == []

    def test_topics_are_isolated(self, hub):
        sender = hub.open_channel("cart-sync")
        other_topic = hub.open_channel("wishlist-sync")
        received = []
        other_topic.subscribe(received.append)

        sender.broadcast_cart_update()

        assert received == []

    def test_unsubscribe_twice_is_harmless(self, hub):
        sender = hub.open_channel("cart-sync")
        receiver = hub.open_channel("cart-sync")
        received = []
        unsubscribe = receiver.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        sender.broadcast_cart_update()

        assert received == []

    def test_failing_subscriber_does_not_block_others(self, hub):
        sender = hub.open_channel("cart-sync")
        receiver = hub.open_channel("cart-sync")
        received = []

        def broken(message):
            raise ValueError("boom")

        receiver.subscribe(broken)
        receiver.subscribe(received.append)

        sender.publish(SyncMessage.cart_cleared())

        assert len(received) == 1

    def test_publish_after_close(self, hub):
        channel = hub.open_channel("cart-sync")
        channel.close()
        channel.close()

        with pytest.raises(SyncChannelClosed):
            channel.broadcast_cart_update()

    def test_closed_channel_stops_receiving(self, hub):
        sender = hub.open_channel("cart-sync")
        receiver = hub.open_channel("cart-sync")
        received = []
        receiver.subscribe(received.append)

        receiver.close()
        sender.broadcast_cart_update()

        assert received == []

    def test_message_carries_timestamp(self):
        message = SyncMessage.cart_updated()
        assert message.timestamp.tzinfo is not None


RED_MATTE_M = {"color": "red", "material": "matte", "size": "m"}


async def _wait_for_watchers(collection, count):
    for _ in range(100):
        if len(collection.streams) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} change streams, got {len(collection.streams)}")


class TestMongoSyncChannel:
    """Test the change-stream transport between processes."""

    @pytest.mark.asyncio
    async def test_publish_inserts_event(self):
        collection = MagicMock()
        collection.insert_one = AsyncMock(return_value=MagicMock())
        channel = MongoSyncChannel(collection, "cart-sync")

        channel.publish(SyncMessage.cart_cleared())
        await channel.flush()

        document = collection.insert_one.call_args[0][0]
        assert document["topic"] == "cart-sync"
        assert document["type"] == "CART_CLEARED"
        assert document["origin"] == channel.origin

    @pytest.mark.asyncio
    async def test_publish_failure_is_logged(self):
        collection = MagicMock()
        collection.insert_one = AsyncMock(side_effect=PyMongoError("not primary"))
        channel = MongoSyncChannel(collection, "cart-sync")

        channel.broadcast_cart_update()
        await channel.flush()

        collection.insert_one.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_after_close(self):
        channel = MongoSyncChannel(MagicMock(), "cart-sync")
        channel.close()

        with pytest.raises(SyncChannelClosed):
            channel.broadcast_cart_update()

    @pytest.mark.asyncio
    async def test_delivers_other_origins_only(self):
        events = FakeEventCollection()
        sender = MongoSyncChannel(events, "cart-sync")
        receiver = MongoSyncChannel(events, "cart-sync")
        sent_back, received = [], []
        sender.subscribe(sent_back.append)
        got_message = asyncio.Event()
        receiver.subscribe(lambda message: (received.append(message), got_message.set()))
        sender.start()
        receiver.start()
        try:
            await _wait_for_watchers(events, 2)
            sender.broadcast_cart_update()
            await sender.flush()
            await asyncio.wait_for(got_message.wait(), timeout=1)
            await asyncio.sleep(0)

            assert [m.type for m in received] == [SyncMessageType.CART_UPDATED]
            assert sent_back == []
        finally:
            sender.close()
            receiver.close()
            await sender.wait_closed()
            await receiver.wait_closed()

    @pytest.mark.asyncio
    async def test_malformed_event_ignored(self):
        events = FakeEventCollection()
        channel = MongoSyncChannel(events, "cart-sync")
        received = []
        channel.subscribe(received.append)
        channel.start()
        try:
            await _wait_for_watchers(events, 1)
            events.streams[0].put_nowait({"operationType": "insert", "fullDocument": {"topic": "cart-sync"}})
            events.streams[0].put_nowait({
                "operationType": "insert",
                "fullDocument": {"topic": "cart-sync", "type": "CART_CLEARED", "timestamp": "2026-01-01T00:00:00Z"},
            })
            for _ in range(10):
                await asyncio.sleep(0)

            assert [m.type for m in received] == [SyncMessageType.CART_CLEARED]
        finally:
            channel.close()
            await channel.wait_closed()

    @pytest.mark.asyncio
    async def test_change_stream_failure_retries(self):
        collection = MagicMock()
        collection.create_index = AsyncMock(return_value="timestamp_1")
        collection.watch = MagicMock(side_effect=PyMongoError("change streams need a replica set"))
        channel = MongoSyncChannel(collection, "cart-sync", retry_delay=0.01)

        channel.start()
        await asyncio.sleep(0.1)
        channel.close()
        await channel.wait_closed()

        assert collection.watch.call_count >= 2

    @pytest.mark.asyncio
    async def test_stores_in_separate_processes_converge(self, catalog, storage):
        """A write in one process is seen by the other before it writes."""
        events = FakeEventCollection()
        channel_a = MongoSyncChannel(events, "cart-sync")
        channel_b = MongoSyncChannel(events, "cart-sync")
        store_a = CartStore(catalog, storage, channel_a)
        store_b = CartStore(catalog, storage, channel_b)
        store_a.start()
        store_b.start()
        b_notified = asyncio.Event()
        channel_b.subscribe(lambda message: b_notified.set())
        channel_a.start()
        channel_b.start()
        try:
            await _wait_for_watchers(events, 2)
            await store_b.load_from_storage()

            await store_a.add_item("chair-001", RED_MATTE_M, 2)
            await asyncio.wait_for(b_notified.wait(), timeout=1)
            await store_b.wait_for_sync()

            assert len(store_b.items) == 1
            await store_b.apply_promo_code("WELCOME10")

            record = await storage.get()
            assert len(record["items"]) == 1
            assert record["items"][0]["quantity"] == 2
            assert record["promoCodes"] == ["WELCOME10"]
        finally:
            await channel_b.flush()
            store_a.close()
            store_b.close()
            await store_a.wait_for_sync()
            await channel_a.wait_closed()
            await channel_b.wait_closed()
