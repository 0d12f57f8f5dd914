"""
LEDFlow MCP Server - drive LED controllers over stdio.

Owns the process-wide LightingEngine. Handlers reach it through
_get_engine(); stdout carries the MCP stream, so all logging goes to stderr.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from mcp.server.stdio import stdio_server

from .config import EngineConfig, get_config_manager
from .engine.facade import LightingEngine
from .tool_registry import create_server

logger = logging.getLogger(__name__)

_engine: Optional[LightingEngine] = None


def _get_engine() -> Optional[LightingEngine]:
    return _engine


def _set_engine(engine: Optional[LightingEngine]) -> None:
    global _engine
    _engine = engine


def configure_logging(level: str = "INFO") -> None:
    level = os.environ.get("LEDFLOW_LOG_LEVEL", level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def wake(config: EngineConfig) -> LightingEngine:
    """Build the engine from config and install it for the handlers."""
    engine = LightingEngine.create(config)
    _set_engine(engine)
    return engine


async def sleep() -> None:
    """Stop transitions, flush preset syncs, close the HTTP client."""
    engine = _get_engine()
    if engine is None:
        return
    try:
        await engine.aclose()
    finally:
        _set_engine(None)


async def _refresh_all(engine: LightingEngine) -> None:
    # Capabilities gate the CCT path; learn them before the first tool call
    for device in engine.devices.values():
        await engine.refresh_device(device)


async def run_stdio_server(config: EngineConfig) -> None:
    """Run the MCP server over stdio (local)."""
    engine = wake(config)
    server = create_server()
    try:
        await _refresh_all(engine)
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await sleep()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="LEDFlow MCP Server")
    parser.add_argument("--config", type=Path, default=None,
                        help="Config file (default: $LEDFLOW_CONFIG or ledflow_config.yaml)")
    parser.add_argument("--log-level", default=None, help="Logging level (default: from config)")
    args = parser.parse_args()

    manager = get_config_manager(args.config)
    config = manager.load()
    configure_logging(args.log_level or config.log_level)
    logger.info("[Server] Config: %s (exists=%s)", manager.config_path, manager.config_path.exists())

    try:
        asyncio.run(run_stdio_server(config))
    except KeyboardInterrupt:
        logger.info("[Server] Interrupted by user")
    except Exception:
        logger.exception("[Server] Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    main()
