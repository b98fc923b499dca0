"""
Networking core: the acceptor, per-connection state, and the worker pool.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer, ServerStartupError
from .thread_pool import ThreadPool, Worker, WorkerState

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ServerStartupError",
    "ThreadPool",
    "Worker",
    "WorkerState",
]
