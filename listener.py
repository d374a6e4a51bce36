# listener.py

import socket
from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger

from config import BIND_HOST, DEFAULT_PORT, LISTEN_BACKLOG

MAX_PORT = 65535


class ListenerSetupError(Exception):
    """Raised when the listening socket cannot be created, bound or put into listening state."""


@dataclass
class ListeningEndpoint:
    """A bound socket in the listening state, used only to accept new connections."""

    sock: socket.socket
    host: str
    port: int
    backlog: int = LISTEN_BACKLOG

    @property
    def closed(self) -> bool:
        return self.sock.fileno() == -1

    def accept(self) -> Tuple[socket.socket, Tuple[str, int]]:
        return self.sock.accept()

    def close(self) -> None:
        if not self.closed:
            self.sock.close()
            logger.info(f"Listening socket on port {self.port} closed")

    def __enter__(self) -> "ListeningEndpoint":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _bind_with_fallback(sock: socket.socket, host: str, port: int, max_attempts: Optional[int]) -> int:
    """
    Bind `sock`, moving to the next port number after every failed attempt.

    Without `max_attempts` this keeps trying until a bind succeeds or the
    port range runs out.
    """
    attempt_count = 0
    while True:
        attempt_count += 1
        try:
            sock.bind((host, port))
            return sock.getsockname()[1]
        except OSError as e:
            logger.warning(f"Bind failed on port {port} ({e}), retrying on next port")

        if max_attempts is not None and attempt_count >= max_attempts:
            raise ListenerSetupError(f"No free port after {attempt_count} bind attempts")
        if port >= MAX_PORT:
            raise ListenerSetupError(f"Port range exhausted after {attempt_count} bind attempts")
        port += 1


def create_listener(
    preferred_port: int = DEFAULT_PORT,
    host: str = BIND_HOST,
    backlog: int = LISTEN_BACKLOG,
    max_attempts: Optional[int] = None,
) -> ListeningEndpoint:
    """
    Create an IPv4 TCP listener bound to `preferred_port` or the first free port after it.

    The bound port is logged and printed, since it may differ from the
    preferred one.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError as e:
        raise ListenerSetupError(f"Socket creation failed: {e}") from e
    logger.info("Socket created successfully")

    try:
        # Allow immediate reuse of the port after restart
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        port = _bind_with_fallback(sock, host, preferred_port, max_attempts)
        logger.info(f"Socket bound to port {port}")
        print(f"Using port: {port}", flush=True)

        sock.listen(backlog)
    except ListenerSetupError:
        sock.close()
        raise
    except OSError as e:
        sock.close()
        raise ListenerSetupError(f"Failed to set socket to listening state: {e}") from e

    logger.info("Listening for connections...")
    return ListeningEndpoint(sock=sock, host=host, port=port, backlog=backlog)
