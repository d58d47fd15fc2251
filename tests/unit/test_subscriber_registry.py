"""
Unit Tests for the Subscriber Registry

These tests verify that SubscriberRegistry:
- Registers and unregisters idempotently
- Delivers a broadcast to every subscriber
- Isolates failing and slow subscribers and removes them
- Survives membership changes during a broadcast

Run with:
    pytest tests/unit/test_subscriber_registry.py -v
"""

import asyncio
import json

import pytest

from core.transformer import transform_ticker
from services.subscriber_registry import SubscriberRegistry


# ============================================
# Fake Subscribers
# ============================================

class FakeSubscriber:
    """Records every frame it receives"""

    def __init__(self, name="sub"):
        self.name = name
        self.frames = []

    async def send_text(self, data):
        self.frames.append(data)


class BrokenSubscriber(FakeSubscriber):
    """Connection already closed"""

    async def send_text(self, data):
        raise RuntimeError("Cannot call send once a close message has been sent")


class SlowSubscriber(FakeSubscriber):
    """Never finishes a send"""

    async def send_text(self, data):
        await asyncio.sleep(3600)


@pytest.fixture
def wire_message():
    return transform_ticker({
        "e": "24hrTicker", "s": "BTCUSDT", "c": "65000.00", "P": "120.50", "p": "2.50",
        "v": "1000", "h": "66000", "l": "64000", "o": "64880", "n": "500",
    })


# ============================================
# Tests for Membership
# ============================================

class TestMembership:
    """Tests for register/unregister"""

    def test_register_adds_subscriber(self):
        registry = SubscriberRegistry()
        sub = FakeSubscriber()

        registry.register(sub)

        assert sub in registry
        assert len(registry) == 1

    def test_register_is_idempotent(self):
        """Verify the same handle is never stored twice"""
        registry = SubscriberRegistry()
        sub = FakeSubscriber()

        registry.register(sub)
        registry.register(sub)

        assert len(registry) == 1

    def test_unregister_removes_subscriber(self):
        registry = SubscriberRegistry()
        sub = FakeSubscriber()
        registry.register(sub)

        registry.unregister(sub)

        assert sub not in registry
        assert len(registry) == 0

    def test_unregister_unknown_is_noop(self):
        registry = SubscriberRegistry()

        registry.unregister(FakeSubscriber())

        assert len(registry) == 0

    def test_snapshot_is_a_copy(self):
        registry = SubscriberRegistry()
        sub = FakeSubscriber()
        registry.register(sub)

        members = registry.snapshot()
        registry.unregister(sub)

        assert members == [sub]


# ============================================
# Tests for Broadcast
# ============================================

class TestBroadcast:
    """Tests for fan-out delivery"""

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_subscriber(self, wire_message):
        registry = SubscriberRegistry()
        subs = [FakeSubscriber(n) for n in ("a", "b", "c")]
        for sub in subs:
            registry.register(sub)

        delivered = await registry.broadcast(wire_message)

        assert delivered == 3
        for sub in subs:
            assert len(sub.frames) == 1
            assert json.loads(sub.frames[0])["data"]["s"] == "BTC"

    @pytest.mark.asyncio
    async def test_broadcast_with_no_subscribers(self, wire_message):
        registry = SubscriberRegistry()

        assert await registry.broadcast(wire_message) == 0

    @pytest.mark.asyncio
    async def test_failing_subscriber_removed_others_delivered(self, wire_message):
        """Verify A failing does not stop B and C, and A is removed"""
        registry = SubscriberRegistry()
        a = BrokenSubscriber("a")
        b = FakeSubscriber("b")
        c = FakeSubscriber("c")
        for sub in (a, b, c):
            registry.register(sub)

        delivered = await registry.broadcast(wire_message)

        assert delivered == 2
        assert len(b.frames) == 1
        assert len(c.frames) == 1
        assert a not in registry
        assert b in registry and c in registry

    @pytest.mark.asyncio
    async def test_slow_subscriber_times_out_without_stalling_others(self, wire_message):
        """Verify a stuck send is bounded by send_timeout"""
        registry = SubscriberRegistry(send_timeout=0.05)
        slow = SlowSubscriber("slow")
        fast = FakeSubscriber("fast")
        registry.register(slow)
        registry.register(fast)

        delivered = await asyncio.wait_for(registry.broadcast(wire_message), timeout=1)

        assert delivered == 1
        assert len(fast.frames) == 1
        assert slow not in registry

    @pytest.mark.asyncio
    async def test_unregister_during_broadcast_is_safe(self, wire_message):
        """Verify membership changes mid-broadcast do not break iteration"""
        registry = SubscriberRegistry()
        late = FakeSubscriber("late")

        class Leaver(FakeSubscriber):
            async def send_text(self, data):
                registry.unregister(self)
                registry.register(late)
                await super().send_text(data)

        leaver = Leaver("leaver")
        other = FakeSubscriber("other")
        registry.register(leaver)
        registry.register(other)

        delivered = await registry.broadcast(wire_message)

        assert delivered == 2
        assert len(other.frames) == 1
        assert late.frames == []  # joined after the broadcast started
        assert late in registry

    @pytest.mark.asyncio
    async def test_broadcast_accepts_dict_and_text(self):
        registry = SubscriberRegistry()
        sub = FakeSubscriber()
        registry.register(sub)

        await registry.broadcast({"type": "ping"})
        await registry.broadcast("raw")

        assert json.loads(sub.frames[0]) == {"type": "ping"}
        assert sub.frames[1] == "raw"

    @pytest.mark.asyncio
    async def test_message_serialized_identically_for_all(self, wire_message):
        registry = SubscriberRegistry()
        a, b = FakeSubscriber("a"), FakeSubscriber("b")
        registry.register(a)
        registry.register(b)

        await registry.broadcast(wire_message)

        assert a.frames == b.frames == [wire_message.to_json()]


# ============================================
# Tests for Closing Dropped Subscribers
# ============================================

class ClosableSlowSubscriber(SlowSubscriber):
    """Stalled subscriber that records being closed"""

    def __init__(self, name="sub"):
        super().__init__(name)
        self.closed = False

    async def close(self):
        self.closed = True


class UncloseableSubscriber(BrokenSubscriber):
    """Failing subscriber whose close also fails"""

    async def close(self):
        raise RuntimeError("already closed")


class TestDroppedSubscribers:
    """Tests for closing subscribers removed by a failed send"""

    @pytest.mark.asyncio
    async def test_timed_out_subscriber_is_closed(self, wire_message):
        """Verify a subscriber dropped on timeout is closed so it can reconnect"""
        registry = SubscriberRegistry(send_timeout=0.05)
        slow = ClosableSlowSubscriber("slow")
        registry.register(slow)

        await asyncio.wait_for(registry.broadcast(wire_message), timeout=1)

        assert slow not in registry
        assert slow.closed is True

    @pytest.mark.asyncio
    async def test_close_failure_is_swallowed(self, wire_message):
        registry = SubscriberRegistry()
        bad = UncloseableSubscriber("bad")
        good = FakeSubscriber("good")
        registry.register(bad)
        registry.register(good)

        delivered = await registry.broadcast(wire_message)

        assert delivered == 1
        assert bad not in registry
        assert len(good.frames) == 1
