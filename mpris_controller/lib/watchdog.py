"""Systemd notify helpers for the monitor service.

READY=1 once startup is done, WATCHDOG=1 heartbeats while running,
STOPPING=1 on the way out, plus free-form STATUS= lines that show up in
``systemctl status``.  Everything silently no-ops when NOTIFY_SOCKET is
unset (dev mode, tests).

Usage:
    from mpris_controller.lib.watchdog import sd_notify, watchdog_loop
    task = asyncio.create_task(watchdog_loop(status=lambda: "3 players"))
"""

import asyncio
import logging
import os
import socket
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _socket_address() -> Optional[str]:
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return None
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    return addr


def sd_notify(msg: str) -> bool:
    """Send *msg* to the systemd notify socket.  Returns False when unset."""
    addr = _socket_address()
    if addr is None:
        return False
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(msg.encode(), addr)
    except OSError as e:
        logger.debug("sd_notify(%r) failed: %s", msg, e)
        return False
    finally:
        sock.close()
    return True


async def watchdog_loop(interval: float = 20, status: Optional[Callable[[], str]] = None):
    """Send READY=1, then WATCHDOG=1 (and STATUS=) every *interval* seconds.

    Run as a task; cancel it on shutdown.
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%gs)", interval)
    while True:
        msg = "WATCHDOG=1"
        if status is not None:
            msg += f"\nSTATUS={status()}"
        sd_notify(msg)
        await asyncio.sleep(interval)
