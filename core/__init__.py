"""
Core system components for connection management, logging and configuration
"""

from .connection_manager import ConnectionManager, ConnectionStatus, ReconnectPolicy, Session

__all__ = ["ConnectionManager", "ConnectionStatus", "ReconnectPolicy", "Session"]
