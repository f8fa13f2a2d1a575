"""
Client connection status for a voice session.

Tracked by SessionGateway, independently of the orchestrator state:
IDLE can occur with any ConnectionStatus.
"""

from enum import Enum


class ConnectionStatus(Enum):
    DOWN = "DOWN"
    UP = "UP"
