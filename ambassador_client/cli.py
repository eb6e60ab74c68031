# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Ambassador Client CLI

Usage:
    mcpambassador-client --server https://ambassador.internal:8443
    mcpambassador-client --config ./config.yaml
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import List, Optional

from ambassador_client import __version__
from ambassador_client.client import AmbassadorClient
from ambassador_client.core.config import CONFIG_PATH_ENV, ENV_VARS, ClientConfig, load_config
from ambassador_client.core.errors import AmbassadorError, ConfigurationError
from ambassador_client.core.logging import configure_logging
from ambassador_client.core.masking import SecretRegistry

logger = logging.getLogger("ambassador_client.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpambassador-client",
        description="Relay MCP tool calls from a host app to an Ambassador Server over stdio",
    )
    parser.add_argument("--server", help=f"Ambassador Server URL (env: {ENV_VARS['server_url']})")
    parser.add_argument("--config", help=f"YAML config file (env: {CONFIG_PATH_ENV})")
    parser.add_argument(
        "--preshared-key",
        help=f"Preshared registration key (prefer env: {ENV_VARS['preshared_key']})",
    )
    parser.add_argument("--friendly-name", help="Name shown for this client on the server")
    parser.add_argument("--host-tool", help="Host tool identifier (default: custom)")
    parser.add_argument(
        "--allow-self-signed",
        action="store_true",
        default=None,
        help="Disable TLS certificate verification (development only)",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    parser.add_argument("--log-format", choices=["json", "text"], help="Log format (default: text)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


async def run(config: ClientConfig, secrets: SecretRegistry) -> int:
    """
    Run the client until stdin closes or a shutdown signal arrives.

    Returns:
        Process exit status
    """
    client = AmbassadorClient(config, secrets)

    try:
        await client.start()
    except AmbassadorError as e:
        logger.critical(f"Startup failed: {e}")
        await client.stop()
        return 1

    loop = asyncio.get_running_loop()
    serve_task = asyncio.create_task(client.serve_stdin())
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, serve_task.cancel)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await serve_task
    except asyncio.CancelledError:
        logger.info("Shutdown signal received")
    finally:
        await client.stop()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.server or args.config or os.getenv(ENV_VARS["server_url"]) or os.getenv(CONFIG_PATH_ENV)):
        parser.print_usage(sys.stderr)
        logger.error("Usage: mcpambassador-client --server <url> or --config <path>")
        return 1

    # Until the config is loaded, log at the requested level so validation warnings are visible
    secrets = SecretRegistry([args.preshared_key] if args.preshared_key else None)
    configure_logging(
        args.log_level or os.getenv(ENV_VARS["log_level"]) or "INFO",
        args.log_format or "text",
        secrets,
    )

    overrides = {
        "server_url": args.server,
        "preshared_key": args.preshared_key,
        "friendly_name": args.friendly_name,
        "host_tool": args.host_tool,
        "allow_self_signed": args.allow_self_signed,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    try:
        config = load_config(args.config, overrides)
    except ConfigurationError as e:
        logger.error(e.message)
        return 1

    secrets.add(config.preshared_key.get_secret_value())
    configure_logging(config.log_level, config.log_format, secrets)
    logger.info(f"mcpambassador-client {__version__} (friendly name: {config.friendly_name})")

    return asyncio.run(run(config, secrets))
