# server.py

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from config import BIND_HOST, DEFAULT_PORT, LISTEN_BACKLOG
from connection import handle_connection
from listener import ListeningEndpoint, create_listener


@dataclass
class ServerConfig:
    """Configuration for the echo server."""
    host: str = BIND_HOST
    port: int = DEFAULT_PORT
    backlog: int = LISTEN_BACKLOG
    # None keeps retrying on the next port until a bind succeeds
    max_bind_attempts: Optional[int] = None

    def __post_init__(self):
        if not (0 <= self.port <= 65535):
            raise ValueError("Port must be between 0 and 65535")
        if self.backlog < 1:
            raise ValueError("Backlog must be at least 1")
        if self.max_bind_attempts is not None and self.max_bind_attempts < 1:
            raise ValueError("Max bind attempts must be at least 1")


class EchoServer:
    """Accepts connections one at a time and hands each to the connection handler."""

    def __init__(self, config: ServerConfig):
        self.config = config
        self.listener: Optional[ListeningEndpoint] = None

    @property
    def port(self) -> Optional[int]:
        return self.listener.port if self.listener else None

    def initialize(self) -> int:
        self.listener = create_listener(
            self.config.port,
            host=self.config.host,
            backlog=self.config.backlog,
            max_attempts=self.config.max_bind_attempts,
        )
        return self.listener.port

    def serve(self) -> None:
        """
        Run the accept loop until a client sends QUIT.

        A connection is always closed before the next one is accepted, so at
        most one client is being served at any time.
        """
        if self.listener is None:
            raise RuntimeError("Server is not initialized. Call initialize() first.")

        quit_requested = False
        while not quit_requested:
            logger.info("Waiting for new connection...")
            try:
                conn, addr = self.listener.accept()
            except KeyboardInterrupt:
                logger.info("Server stopped by user.")
                break
            except OSError as e:
                if self.listener.closed:
                    break
                logger.error(f"Failed to accept connection: {e}")
                continue

            peer = f"{addr[0]}:{addr[1]}"
            logger.info(f"Accepted new connection from {peer}")
            with conn:
                try:
                    quit_requested = handle_connection(conn, peer)
                except KeyboardInterrupt:
                    logger.info("Server stopped by user.")
                    break
            logger.info(f"Connection with {peer} closed")

    def close(self) -> None:
        if self.listener is not None:
            self.listener.close()

    def run(self) -> int:
        self.initialize()
        try:
            self.serve()
        finally:
            logger.info("Shutting down server")
            self.close()
        return 0
