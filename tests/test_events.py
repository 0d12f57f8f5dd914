"""Tests for publish/subscribe channels."""

from ledflow_mcp.events import Channel


class TestChannel:

    def test_publish_reaches_every_subscriber(self):
        channel = Channel("test")
        a, b = [], []
        channel.subscribe(a.append)
        channel.subscribe(b.append)
        channel.publish(1)
        assert a == [1]
        assert b == [1]

    def test_unsubscribe(self):
        channel = Channel("test")
        seen = []
        unsubscribe = channel.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        channel.publish("x")
        assert seen == []
        assert channel.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        channel = Channel("test")
        seen = []

        def broken(value):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)
        channel.publish(3)
        assert seen == [3]

    def test_subscriber_may_unsubscribe_during_publish(self):
        channel = Channel("test")
        seen = []
        holder = {}

        def once(value):
            seen.append(value)
            holder["unsub"]()

        holder["unsub"] = channel.subscribe(once)
        channel.publish(1)
        channel.publish(2)
        assert seen == [1]
