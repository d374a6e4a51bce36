# connection.py

import socket
from enum import Enum
from typing import Optional

from loguru import logger

from config import BUFFER_SIZE, CLOSE_COMMAND, QUIT_COMMAND


class Directive(Enum):
    QUIT = QUIT_COMMAND
    CLOSE = CLOSE_COMMAND


class ConnectionState(Enum):
    RUNNING = "running"
    CLOSE_ONLY = "close_only"
    QUIT_SERVER = "quit_server"
    READ_ERROR = "read_error"
    WRITE_ERROR = "write_error"
    PEER_CLOSED = "peer_closed"


def classify(data: bytes) -> Optional[Directive]:
    """Match the leading bytes of a message against the known directives (case-sensitive)."""
    if data.startswith(Directive.QUIT.value):
        return Directive.QUIT
    if data.startswith(Directive.CLOSE.value):
        return Directive.CLOSE
    return None


class ConnectionHandler:
    """
    Read/echo loop for one accepted connection.

    Every chunk returned by a single receive call is one message. Messages
    starting with QUIT or CLOSE end the connection, anything else is sent
    back unchanged. The handler never closes the stream; the caller does.
    """

    def __init__(self, stream: socket.socket, peer: Optional[str] = None, buffer_size: int = BUFFER_SIZE):
        if buffer_size < 2:
            raise ValueError("Buffer size must be at least 2 bytes")
        self.stream = stream
        self.peer = peer or "client"
        self.read_size = buffer_size - 1
        self.state = ConnectionState.RUNNING

    @property
    def shutdown_requested(self) -> bool:
        return self.state is ConnectionState.QUIT_SERVER

    def _read(self) -> Optional[bytes]:
        try:
            return self.stream.recv(self.read_size)
        except OSError as e:
            logger.error(f"Failed to read from {self.peer}: {e}")
            self.state = ConnectionState.READ_ERROR
            return None

    def _echo(self, data: bytes) -> None:
        try:
            self.stream.sendall(data)
            logger.trace(f"Echoed {len(data)} bytes back to {self.peer}")
        except OSError as e:
            logger.error(f"Failed to write to {self.peer}: {e}")
            self.state = ConnectionState.WRITE_ERROR

    def step(self) -> ConnectionState:
        """Handle a single message and return the resulting state."""
        if self.state is not ConnectionState.RUNNING:
            return self.state

        data = self._read()
        if data is None:
            return self.state

        if not data:
            logger.info(f"{self.peer} closed the connection")
            self.state = ConnectionState.PEER_CLOSED
            return self.state

        logger.debug(f"Received data from {self.peer}: {data!r}")

        directive = classify(data)
        if directive is Directive.QUIT:
            logger.info("Received QUIT command, exiting connection")
            self.state = ConnectionState.QUIT_SERVER
        elif directive is Directive.CLOSE:
            logger.info("Received CLOSE command, closing connection")
            self.state = ConnectionState.CLOSE_ONLY
        else:
            self._echo(data)
        return self.state

    def run(self) -> bool:
        """Process messages until the connection ends; True means the server should shut down."""
        logger.info(f"Processing new connection from {self.peer}")
        while self.state is ConnectionState.RUNNING:
            self.step()
        logger.info(f"Finished connection from {self.peer} ({self.state.value})")
        return self.shutdown_requested


def handle_connection(stream: socket.socket, peer: Optional[str] = None) -> bool:
    return ConnectionHandler(stream, peer).run()
