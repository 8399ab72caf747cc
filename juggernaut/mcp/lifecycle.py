"""
Juggernaut MCP process lifecycle.

Startup runs in a fixed order: configure logging, check the plugin gate, open
and verify the mirror store, then serve until stdin closes or SIGTERM/SIGINT
arrives. stdout carries protocol frames only, so every diagnostic goes to
stderr (or the configured log file).
"""

import logging
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from juggernaut.core.config import JuggernautConfig, ServerConfig
from juggernaut.core.errors import FeatureDisabledError, JuggernautError
from juggernaut.core.feature_flags import FeatureFlags
from juggernaut.mcp.server import McpServer, ShutdownRequested
from juggernaut.store.sqlite_mirror import SQLiteMirrorStore

logger = logging.getLogger("Juggernaut.mcp.lifecycle")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DIAGNOSTIC_PREFIX = "[juggernaut-mcp]"

_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def configure_logging(config: ServerConfig) -> None:
    handler: logging.Handler
    if config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[handler],
        force=True,
    )


def _diagnostic(message: str) -> None:
    sys.stderr.write(f"{DIAGNOSTIC_PREFIX} {message}\n")
    sys.stderr.flush()


class _ShutdownSignal:
    """
    Signal handler bound to one server.

    While a message is being dispatched the handler only records the request,
    so an open transaction commits or rolls back on its own terms; the read
    loop then stops before the next message. When the loop is idle (blocked
    on stdin) it raises ShutdownRequested straight away.
    """

    def __init__(self, server: Optional[McpServer] = None):
        self.server = server

    def __call__(self, signum, frame) -> None:
        name = signal.Signals(signum).name
        if self.server is not None and self.server.dispatching:
            logger.info("Received %s during a request; stopping after it completes", name)
            self.server.request_shutdown(name)
            return
        raise ShutdownRequested(name)


@contextmanager
def install_signal_handlers(server: Optional[McpServer] = None) -> Iterator[None]:
    """Route SIGTERM/SIGINT to a graceful shutdown; restore previous handlers on exit."""
    handler = _ShutdownSignal(server)
    previous = {}
    for sig in _SHUTDOWN_SIGNALS:
        previous[sig] = signal.signal(sig, handler)
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def run(
    config: Optional[JuggernautConfig] = None,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
    *,
    setup_logging: bool = True,
) -> int:
    """Run the stdio server to completion and return the process exit code."""
    if config is None:
        config = JuggernautConfig.from_env()
    if setup_logging:
        configure_logging(config.server)

    flags = FeatureFlags.from_registry(Path(config.registry_path))
    try:
        flags.require("mcp_server")
    except FeatureDisabledError as exc:
        _diagnostic(str(exc))
        return 1

    store: Optional[SQLiteMirrorStore] = None
    try:
        store = SQLiteMirrorStore(config.store.path, lock_timeout_ms=config.store.lock_timeout_ms)
        store.verify_schema()
    except JuggernautError as exc:
        if store is not None:
            store.close()
        _diagnostic(str(exc))
        return 1

    logger.info(
        "Server starting (db: %s, lock timeout: %d ms)",
        config.store.path,
        config.store.lock_timeout_ms,
    )
    server = McpServer(
        store,
        stdout if stdout is not None else sys.stdout.buffer,
        read_chunk_size=config.server.read_chunk_size,
    )
    try:
        with install_signal_handlers(server):
            server.serve(stdin if stdin is not None else sys.stdin.buffer)
    except ShutdownRequested as exc:
        logger.info("Received %s, shutting down", exc)
    finally:
        store.close()

    if server.shutdown_reason is not None:
        logger.info("Received %s, shut down after the in-flight request", server.shutdown_reason)
    logger.info("Server stopped")
    return 0
