"""Run a supervised Redis instance behind an MCP control server.

Usage:
    python -m embedded_redis [--env-file FILE] [--port PORT]

The instance is configured from the environment (see ``Config``), started
before the control server begins serving, and stopped after it shuts down.
"""

import argparse
import asyncio
import logging
import signal
from pathlib import Path

import uvicorn

from embedded_redis.config import Config
from embedded_redis.control.server import create_server

log = logging.getLogger(__name__)

# Logger that reports a client hanging up before its response was written.
MCP_SESSION_LOGGER = "mcp.server.streamable_http_manager"


def _is_client_disconnect(exc: BaseException | None) -> bool:
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        if type(exc).__name__ == "ClosedResourceError":
            return True
        exc = exc.__cause__ or exc.__context__
    return False


def downgrade_client_disconnects(record: logging.LogRecord) -> bool:
    """Turn the SDK's disconnect traceback into a single DEBUG line."""
    if record.exc_info and _is_client_disconnect(record.exc_info[1]):
        record.levelno = logging.DEBUG
        record.levelname = logging.getLevelName(logging.DEBUG)
        record.msg = "Client disconnected before response completed"
        record.args = None
        record.exc_info = None
        record.exc_text = None
    return True


async def _run(config: Config, port: int) -> None:
    instance = config.build_instance()
    server = create_server(instance, port=port, stop_timeout=config.stop_timeout)

    await instance.start()

    app = server.streamable_http_app()
    uvi_config = uvicorn.Config(
        app, host="127.0.0.1", port=port, log_level=config.log_level.lower(),
    )
    uvi = uvicorn.Server(uvi_config)

    # _serve() rather than serve(): serve() installs its own signal
    # handlers, which would replace the ones registered below.
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    serve_task = asyncio.create_task(uvi._serve())
    try:
        await shutdown.wait()
        log.info("Signal received — shutting down")
        uvi.should_exit = True
        await serve_task
    finally:
        log.info("Stopping %s", instance.name)
        await instance.stop(timeout=config.stop_timeout)


def main() -> None:
    parser = argparse.ArgumentParser(description="Supervised Redis with an MCP control server")
    parser.add_argument(
        "--env-file", type=Path, default=None,
        help="dotenv file to load before reading the environment",
    )
    parser.add_argument(
        "--port", type=int, default=None,
        help="Control server port (default: CONTROL_PORT or 8902)",
    )
    args = parser.parse_args()

    config = Config.from_env(args.env_file)
    port = args.port if args.port is not None else config.control_port

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [embedded-redis] %(levelname)s %(message)s",
    )

    logging.getLogger(MCP_SESSION_LOGGER).addFilter(downgrade_client_disconnects)

    log.info("Control server on http://127.0.0.1:%d/mcp", port)
    asyncio.run(_run(config, port))
