"""Tests for per-instance event routing."""

import pytest

from localchat.chat.registry import SessionRegistry
from localchat.exceptions import SessionBusyError
from localchat.protocol.bus import EventBus
from localchat.protocol.objects import Complete, Delta


class TestSessionRegistry:
    @pytest.fixture
    def registry(self):
        return SessionRegistry(EventBus())

    @pytest.mark.asyncio
    async def test_instances_never_receive_each_others_events(self, registry, recorder):
        other = []

        async def other_handler(event):
            other.append(event)

        await registry.subscribe("a", recorder)
        await registry.subscribe("b", other_handler)

        await registry.sink("a")(Delta(instance_id="a", text="for a"))
        await registry.sink("b")(Delta(instance_id="b", text="for b"))
        await registry.sink("a")(Complete(instance_id="a", final_text="for a"))

        assert [e.instance_id for e in recorder.events] == ["a", "a"]
        assert [e.text for e in other] == ["for b"]

    @pytest.mark.asyncio
    async def test_sink_re_addresses_mismatched_events(self, registry, recorder):
        await registry.subscribe("a", recorder)
        await registry.sink("a")(Delta(instance_id="b", text="stray"))
        assert recorder.events[0].instance_id == "a"

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, registry, recorder):
        await registry.subscribe("a", recorder)
        await registry.unsubscribe("a", recorder)
        await registry.sink("a")(Delta(instance_id="a", text="late"))
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_duplicate_subscribe_delivers_once(self, registry, recorder):
        await registry.subscribe("a", recorder)
        await registry.subscribe("a", recorder)
        await registry.sink("a")(Delta(instance_id="a", text="once"))
        assert len(recorder.events) == 1

    def test_second_begin_for_same_instance_is_rejected(self, registry):
        registry.begin("a")
        registry.begin("b")
        with pytest.raises(SessionBusyError):
            registry.begin("a")

        registry.end("a")
        registry.begin("a")
        assert registry.active_instances == ["a", "b"]

    @pytest.mark.asyncio
    async def test_each_instance_owns_its_channel(self, registry):
        a = registry.channel("a")
        assert registry.channel("a") is a
        assert registry.channel("b") is not a

        token_a = a.subscribe()
        token_b = registry.channel("b").subscribe()
        assert registry.channel("b").cancel() is True
        assert token_b.cancelled
        assert not token_a.cancelled

    def test_find_channel_never_creates(self, registry):
        assert registry.find_channel("ghost") is None
        assert registry.find_channel("ghost") is None
        registry.channel("real")
        assert registry.find_channel("real") is not None

    def test_end_drops_the_instance_channel(self, registry):
        channel = registry.channel("a")
        registry.begin("a")
        assert registry.find_channel("a") is channel

        registry.end("a")

        assert registry.find_channel("a") is None
        assert registry.channel("a") is not channel
