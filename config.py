# config.py

import os

DEFAULT_PORT = 12345
# Overrides DEFAULT_PORT; parsed and validated in main()
ENV_PORT = os.getenv("ECHO_PORT")
BIND_HOST = os.getenv("ECHO_HOST", "")  # "" binds all local interfaces

# At most one pending, not yet accepted connection is queued by the OS.
LISTEN_BACKLOG = 1

# One byte of the receive buffer is never filled, so a single read returns at most 1023 bytes.
BUFFER_SIZE = 1024

QUIT_COMMAND = b"QUIT"
CLOSE_COMMAND = b"CLOSE"
