"""Background daemon and its unix-socket IPC."""

from .daemon import Daemon, configure_logging, kill, start_in_background
from .monitor import RunMonitor
from .socket import SendRequest, SendResponse, SocketServer, is_daemon_socket_available, send_via_daemon

__all__ = [
    "Daemon",
    "RunMonitor",
    "SendRequest",
    "SendResponse",
    "SocketServer",
    "configure_logging",
    "is_daemon_socket_available",
    "kill",
    "send_via_daemon",
    "start_in_background",
]
