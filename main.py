import argparse
import sys
from typing import List, Optional

from loguru import logger

from config import DEFAULT_PORT, ENV_PORT
from listener import ListenerSetupError
from server import EchoServer, ServerConfig

EXIT_FAILURE = 1

# -d <n> verbosity to loguru level; anything above the last entry logs everything
VERBOSITY_LEVELS = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


class UsageArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports bad command lines with a short usage line on stdout."""

    def error(self, message: str):
        print(f"Usage: {self.prog} -d <num> [-p <port>]", flush=True)
        self.exit(EXIT_FAILURE)


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command line parser.
    Returns:
        parser (argparse.ArgumentParser): The argparse parser object.
    """
    parser = UsageArgumentParser(description="Accepts TCP connections and echoes back each string sent.")

    parser.add_argument(
        "-d",
        dest="verbosity",
        type=int,
        default=0,
        help="Log verbosity: 0 fatal only, 1 errors, 2 warnings, 3 info, 4 debug, 5+ trace (default: 0)",
    )
    parser.add_argument(
        "-p",
        dest="port",
        type=int,
        default=None,
        help=f"Preferred port; the next free port is used if it is taken (default: $ECHO_PORT or {DEFAULT_PORT})",
    )
    return parser


def verbosity_to_level(verbosity: int) -> str:
    if verbosity < 0:
        return VERBOSITY_LEVELS[0]
    if verbosity >= len(VERBOSITY_LEVELS):
        return "TRACE"
    return VERBOSITY_LEVELS[verbosity]


def resolve_port(cli_port: Optional[int]) -> int:
    """Pick the preferred port: -p first, then $ECHO_PORT, then the built-in default."""
    if cli_port is not None:
        return cli_port
    if ENV_PORT is None:
        return DEFAULT_PORT
    try:
        return int(ENV_PORT)
    except ValueError:
        raise ValueError(f"ECHO_PORT must be an integer, got {ENV_PORT!r}") from None


def setup_logging(verbosity: int) -> None:
    logger.remove()
    logger.add(sys.stderr, level=verbosity_to_level(verbosity))


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    setup_logging(args.verbosity)

    logger.info("Starting Echo Server")
    try:
        server = EchoServer(ServerConfig(port=resolve_port(args.port)))
    except ValueError as e:
        logger.critical(f"Invalid configuration: {e}")
        return EXIT_FAILURE

    try:
        return server.run()
    except ListenerSetupError as e:
        logger.critical(str(e))
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
