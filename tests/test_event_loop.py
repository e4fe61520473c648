"""Tests for EventLoop stepping and the async event stream."""

import asyncio

from conftest import SPOTIFY, VLC, player_properties
from mpris_controller.lib.event_loop import EventLoop
from mpris_controller.lib.events import EndpointAppeared, EndpointRemoved, EndpointUpdated
from mpris_controller.lib.model import PlaybackStatus, PlayerField
from mpris_controller.lib.variant import Variant


def run(coro):
    return asyncio.run(coro)


async def started_loop(bus, *players):
    for name in players:
        bus.players[name] = player_properties()
    loop = EventLoop(bus, poll_interval=0.001)
    await loop.start()
    return loop


async def collect(loop, steps):
    return [event for event in [await loop.step() for _ in range(steps)] if event is not None]


class TestStep:
    def test_start_connects_and_bootstraps(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC)
            return loop, await loop.step(), await loop.step()

        loop, first, second = run(scenario())
        assert bus.connected
        assert loop.running
        assert first == EndpointAppeared(VLC)
        assert second is None
        assert loop.registry.get(VLC) is not None

    def test_idle_step_returns_none(self, bus):
        async def scenario():
            loop = await started_loop(bus)
            return [await loop.step() for _ in range(3)]

        assert run(scenario()) == [None, None, None]

    def test_one_event_per_step(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC)
            await loop.step()
            bus.change(VLC, {
                "PlaybackStatus": Variant("s", "Paused"),
                "CanGoPrevious": Variant("b", True),
            })
            return [await loop.step() for _ in range(3)]

        assert run(scenario()) == [
            EndpointUpdated(VLC, PlayerField.PLAYBACK_STATUS),
            EndpointUpdated(VLC, PlayerField.CAN_GO_PREVIOUS),
            None,
        ]

    def test_ownership_before_properties(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC)
            await loop.step()
            bus.change(VLC, {"PlaybackStatus": Variant("s", "Paused")})
            bus.appear(SPOTIFY)
            return await collect(loop, 4)

        assert run(scenario()) == [
            EndpointAppeared(SPOTIFY),
            EndpointUpdated(VLC, PlayerField.PLAYBACK_STATUS),
        ]

    def test_removal_drops_pending_changes(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC)
            await loop.step()
            bus.change(VLC, {"PlaybackStatus": Variant("s", "Paused")})
            bus.vanish(VLC)
            return loop, await collect(loop, 4)

        loop, events = run(scenario())
        assert events == [EndpointRemoved(VLC)]
        assert loop.registry.get(VLC) is None

    def test_players_take_turns(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC, SPOTIFY)
            await collect(loop, 2)
            for status in ("Paused", "Playing"):
                bus.change(VLC, {"PlaybackStatus": Variant("s", status)})
                bus.change(SPOTIFY, {"PlaybackStatus": Variant("s", status)})
            return [event.name for event in await collect(loop, 5)]

        names = run(scenario())
        assert names == [VLC, SPOTIFY, VLC, SPOTIFY]

    def test_refresh_and_rescan(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC)
            await loop.step()
            bus.players[VLC] = player_properties(PlaybackStatus=Variant("s", "Stopped"))
            bus.players[SPOTIFY] = player_properties()
            assert await loop.refresh(VLC)
            await loop.rescan()
            return loop, await collect(loop, 3)

        loop, events = run(scenario())
        assert events == [
            EndpointUpdated(VLC, PlayerField.PLAYBACK_STATUS),
            EndpointAppeared(SPOTIFY),
        ]
        assert loop.registry.get(VLC).playback_status is PlaybackStatus.STOPPED


class TestEvents:
    def test_stream_until_closed(self, bus):
        async def scenario():
            loop = await started_loop(bus)
            seen = []

            async def consume():
                async for event in loop.events():
                    seen.append(event)
                    if len(seen) == 2:
                        await loop.close()

            task = asyncio.create_task(consume())
            await asyncio.sleep(0.01)
            bus.appear(VLC)
            await asyncio.sleep(0.01)
            bus.vanish(VLC)
            await asyncio.wait_for(task, timeout=2)
            return loop, seen

        loop, seen = run(scenario())
        assert seen == [EndpointAppeared(VLC), EndpointRemoved(VLC)]
        assert not loop.running
        assert not bus.connected

    def test_close_releases_subscriptions(self, bus):
        async def scenario():
            loop = await started_loop(bus, VLC, SPOTIFY)
            await loop.close()
            await loop.close()
            return loop

        loop = run(scenario())
        assert all(handle.closed for handle in bus.subscriptions)
        assert len(loop.registry) == 0
