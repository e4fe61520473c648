"""
mpris-controller — typed tracking of MPRIS media players on D-Bus.

  lib/       decoder, model, registry, reconciler, event loop, config
  bus/       message bus transports (dbus-fast)
  monitor.py service pushing player events to UI clients over WebSocket
"""

__version__ = "0.3.0"
