"""Tests for the monitor service: HTTP routes, WebSocket push and CLI helpers."""

import asyncio

from aiohttp import test_utils

from conftest import SPOTIFY, VLC, player_properties
from mpris_controller.lib.events import EndpointUpdated
from mpris_controller.lib.model import PlayerField
from mpris_controller.lib.variant import Variant
from mpris_controller.monitor import MonitorServer, list_players, parse_args


def serve(bus, scenario, *players):
    """Start a MonitorServer on *bus* and run *scenario(server, client)*."""
    for name in players:
        bus.players[name] = player_properties()

    async def run():
        server = MonitorServer(bus, port=8780, poll_interval=0.001)
        await server.loop.start()
        client = test_utils.TestClient(test_utils.TestServer(server.build_app()))
        await client.start_server()
        try:
            return await scenario(server, client)
        finally:
            await client.close()
            await server.loop.close()

    return asyncio.run(run())


class TestHttp:
    def test_players(self, bus):
        async def scenario(server, client):
            resp = await client.get("/players")
            return resp.status, resp.headers, await resp.json()

        status, headers, data = serve(bus, scenario, VLC, SPOTIFY)
        assert status == 200
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert set(data) == {VLC, SPOTIFY}
        assert data[VLC]["name"] == VLC
        assert data[VLC]["playback_status"] == "Playing"
        assert data[VLC]["metadata"]["artists"] == ["Aphex Twin"]

    def test_single_player(self, bus):
        async def scenario(server, client):
            resp = await client.get(f"/players/{VLC}")
            return await resp.json()

        data = serve(bus, scenario, VLC)
        assert data["metadata"]["title"] == "Windowlicker"
        assert data["position"] == 12_000_000

    def test_unknown_player(self, bus):
        async def scenario(server, client):
            resp = await client.get("/players/org.mpris.MediaPlayer2.nobody")
            return resp.status, await resp.json()

        status, data = serve(bus, scenario)
        assert status == 404
        assert data["status"] == "error"

    def test_status(self, bus):
        async def scenario(server, client):
            resp = await client.get("/status")
            return await resp.json()

        data = serve(bus, scenario, VLC)
        assert data["players"] == 1
        assert data["ws_clients"] == 0
        assert data["pending_events"] == 1  # the bootstrap Appeared, not yet pumped
        assert data["running"] is False


class TestWebSocket:
    def test_snapshot_then_events(self, bus):
        async def scenario(server, client):
            ws = await client.ws_connect("/ws")
            initial = await ws.receive_json(timeout=2)

            await server.loop.step()  # consume the bootstrap event
            bus.change(VLC, {"PlaybackStatus": Variant("s", "Paused")})
            event = await server.loop.step()
            await server.broadcast_event(event)
            pushed = await ws.receive_json(timeout=2)
            await ws.close()
            return initial, event, pushed

        initial, event, pushed = serve(bus, scenario, VLC)
        assert initial["type"] == "players"
        assert list(initial["data"]) == [VLC]
        assert event == EndpointUpdated(VLC, PlayerField.PLAYBACK_STATUS)
        assert pushed["type"] == "player_event"
        assert pushed["event"] == {"event": "updated", "name": VLC, "field": "PlaybackStatus"}
        assert pushed["player"]["playback_status"] == "Paused"

    def test_removed_player_has_no_snapshot(self, bus):
        async def scenario(server, client):
            ws = await client.ws_connect("/ws")
            await ws.receive_json(timeout=2)
            await server.loop.step()
            bus.vanish(VLC)
            event = await server.loop.step()
            await server.broadcast_event(event)
            pushed = await ws.receive_json(timeout=2)
            await ws.close()
            return pushed

        pushed = serve(bus, scenario, VLC)
        assert pushed["event"] == {"event": "removed", "name": VLC}
        assert pushed["player"] is None


def test_list_players(bus):
    bus.players[VLC] = player_properties(Volume=Variant("d", 0.5))

    players = asyncio.run(list_players(bus))

    assert list(players) == [VLC]
    assert players[VLC]["volume"] == 0.5
    assert not bus.connected
    assert all(handle.closed for handle in bus.subscriptions)


def test_parse_args():
    args = parse_args(["--list", "--bus", "system", "--port", "9001", "-v"])
    assert args.list and args.verbose
    assert args.bus == "system"
    assert args.port == 9001

    defaults = parse_args([])
    assert defaults.bus is None
    assert defaults.port is None
    assert not defaults.list
