"""
school-bridge server — WebSocket front end for the data layer.

    python -m school_bridge.server
"""

from school_bridge.server.app import SchoolBridgeServer, main
from school_bridge.server.router import Router

__all__ = ["SchoolBridgeServer", "Router", "main"]
