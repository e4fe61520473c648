#!/usr/bin/env python3
# mpris-controller
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
MPRIS monitor service (mpris-monitor)

Tracks every MPRIS media player on the session bus and pushes each change
to UI clients over WebSocket.  Exposes the current snapshots over HTTP:

  GET /ws              — WebSocket; full player list on connect, then one
                         player_event message per change
  GET /players         — every tracked player's snapshot
  GET /players/{name}  — one player's snapshot (404 if unknown)
  GET /status          — service status for the system panel

Usage:
    python3 -m mpris_controller.monitor             # run the service
    python3 -m mpris_controller.monitor --list      # print players once, exit
    python3 -m mpris_controller.monitor --bus system --port 8781 --verbose
"""

import argparse
import asyncio
import json
import logging
import signal
import sys

from aiohttp import web

from .bus import MessageBus, create_bus
from .lib.config import cfg
from .lib.errors import MprisError
from .lib.event_loop import POLL_INTERVAL, EventLoop
from .lib.watchdog import sd_notify, watchdog_loop

log = logging.getLogger("mpris-monitor")

DEFAULT_PORT = 8780


class MonitorServer:
    def __init__(self, bus: MessageBus | None = None, port: int | None = None,
                 poll_interval: float | None = None):
        self.bus = bus if bus is not None else create_bus()
        self.port = port or int(cfg("monitor", "port", default=DEFAULT_PORT))
        if poll_interval is None:
            poll_interval = float(cfg("monitor", "poll_interval", default=POLL_INTERVAL))
        self.loop = EventLoop(self.bus, poll_interval=poll_interval)
        self.running = False
        self._ws_clients: set[web.WebSocketResponse] = set()
        self._runner: web.AppRunner | None = None
        self._pump_task: asyncio.Task | None = None
        self._watchdog_task: asyncio.Task | None = None

    # ── Snapshots as JSON ──

    def player_payload(self, name: str) -> dict | None:
        snapshot = self.loop.registry.get(name)
        if snapshot is None:
            return None
        data = snapshot.to_dict()
        data["name"] = name
        return data

    def players_payload(self) -> dict:
        return {name: self.player_payload(name) for name in self.loop.registry.names()}

    # ── WebSocket broadcasting ──

    async def broadcast_event(self, event):
        """Push one domain event (plus the player's current snapshot) to all clients."""
        if not self._ws_clients:
            return

        message = json.dumps({
            "type": "player_event",
            "event": event.to_dict(),
            "player": self.player_payload(event.name),
        })

        disconnected = set()
        for ws in self._ws_clients:
            try:
                await ws.send_str(message)
            except Exception:
                disconnected.add(ws)

        self._ws_clients -= disconnected
        log.debug("Broadcast %s to %d clients", event, len(self._ws_clients))

    async def pump(self):
        """Forward domain events to WebSocket clients until shutdown."""
        while self.running:
            try:
                async for event in self.loop.events():
                    log.info("%s", event)
                    await self.broadcast_event(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error("Error in event pump: %s", e)
                await asyncio.sleep(1)

    # ── HTTP + WebSocket server ──

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/ws", self._handle_ws)
        app.router.add_get("/players", self._handle_players)
        app.router.add_get("/players/{name}", self._handle_player)
        app.router.add_get("/status", self._handle_status)
        return app

    async def start(self):
        """Enumerate players, start listening, then start pumping events."""
        await self.loop.start()
        self.running = True

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        log.info("MPRIS monitor: HTTP + WebSocket on port %d (%d players)",
                 self.port, len(self.loop.registry))

        self._pump_task = asyncio.create_task(self.pump())
        interval = float(cfg("monitor", "watchdog_interval", default=20))
        self._watchdog_task = asyncio.create_task(
            watchdog_loop(interval, status=self.status_line))

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await self.start()
            await stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Clean up resources."""
        self.running = False
        sd_notify("STOPPING=1")

        for task in (self._pump_task, self._watchdog_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._pump_task = None
        self._watchdog_task = None

        for ws in list(self._ws_clients):
            await ws.close()
        self._ws_clients.clear()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        await self.loop.close()

    def status_line(self) -> str:
        return f"{len(self.loop.registry)} players, {len(self._ws_clients)} clients"

    # ── Handlers ──

    def _cors_headers(self):
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        }

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.add(ws)
        log.info("WebSocket client connected (%d total)", len(self._ws_clients))

        try:
            await ws.send_json({"type": "players", "data": self.players_payload()})

            # push-only, client messages are ignored
            async for _msg in ws:
                pass
        finally:
            self._ws_clients.discard(ws)
            log.info("WebSocket client disconnected (%d remaining)",
                     len(self._ws_clients))

        return ws

    async def _handle_players(self, request: web.Request) -> web.Response:
        return web.json_response(self.players_payload(), headers=self._cors_headers())

    async def _handle_player(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        payload = self.player_payload(name)
        if payload is None:
            return web.json_response(
                {"status": "error", "message": f"unknown player {name}"},
                status=404, headers=self._cors_headers())
        return web.json_response(payload, headers=self._cors_headers())

    async def _handle_status(self, request: web.Request) -> web.Response:
        return web.json_response({
            "bus": self.bus.description,
            "players": len(self.loop.registry),
            "ws_clients": len(self._ws_clients),
            "pending_events": self.loop.reconciler.pending,
            "running": self.running,
        }, headers=self._cors_headers())


async def list_players(bus: MessageBus) -> dict:
    """Enumerate once and return {name: snapshot dict}."""
    loop = EventLoop(bus)
    try:
        await loop.start()
        return {name: snapshot.to_dict() for name, snapshot in loop.registry.list()}
    finally:
        await loop.close()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Track MPRIS media players on D-Bus")
    parser.add_argument("--list", action="store_true",
                        help="print every player's snapshot as JSON and exit")
    parser.add_argument("--bus", choices=("session", "system"),
                        help="bus to watch (default from config, else session)")
    parser.add_argument("--port", type=int, help="HTTP/WebSocket port")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    bus = create_bus(args.bus)
    if args.list:
        try:
            players = await list_players(bus)
        except MprisError as e:
            log.error("Could not list players: %s", e)
            return 1
        print(json.dumps(players, indent=2))
        return 0

    server = MonitorServer(bus, port=args.port)
    try:
        await server.run()
    except MprisError as e:
        log.error("Monitor failed: %s", e)
        return 1
    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
