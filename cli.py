"""Command-line entry point: run the host, run the bridge, or check health."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from config import load_bridge_config
from host_config import HostConfig, load_host_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mcp-tools",
        description="Expose host tools to MCP clients through a polling bridge",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: $MCP_TOOLS_LOG_LEVEL or warning)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write logs to this file instead of stderr (default: $MCP_TOOLS_LOG_FILE)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    host_parser = subparsers.add_parser("host", help="Run the tool host and, unless disabled, its bridge")
    host_parser.add_argument("--config", type=Path, help="Path to TOML config file with host settings")
    host_parser.add_argument("--listen", help="Address for the host RPC endpoint (host:port or unix socket path)")
    host_parser.add_argument("--port", type=int, default=None, help="Port for the bridge's MCP server (0 = any)")
    host_parser.add_argument(
        "--no-bridge",
        dest="bridge",
        action="store_false",
        help="Do not start the bridge; run it separately with 'mcp-tools bridge'",
    )
    host_parser.set_defaults(bridge=None)

    bridge_parser = subparsers.add_parser("bridge", help="Run the MCP bridge against a running host")
    bridge_parser.add_argument("--host-address", help="Host RPC address (default: $MCP_TOOLS_HOST_ADDRESS)")
    bridge_parser.add_argument("--port", type=int, default=None, help="Port for the MCP server (default: $MCP_PORT or any)")

    doctor_parser = subparsers.add_parser("doctor", help="Check dependencies and host reachability")
    doctor_parser.add_argument("--host-address", help="Host RPC address (default: $MCP_TOOLS_HOST_ADDRESS)")

    return parser.parse_args(argv)


def configure_logging(level: Optional[str], log_file: Optional[Path]) -> None:
    name = (level or os.getenv("MCP_TOOLS_LOG_LEVEL") or "warning").upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        raise SystemExit(f"Unknown log level: {level}")

    if log_file is None:
        env_file = (os.getenv("MCP_TOOLS_LOG_FILE") or "").strip()
        log_file = Path(env_file) if env_file else None

    handler: logging.Handler
    if log_file is not None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    logging.basicConfig(level=numeric, format=LOG_FORMAT, handlers=[handler], force=True)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "host":
        configure_logging(args.log_level, args.log_file)
        return run_host(args)
    if args.command == "bridge":
        return run_bridge(args)
    configure_logging(args.log_level, args.log_file)
    return run_doctor(args)


def run_host(args: argparse.Namespace) -> int:
    from host.app import Host

    config = _load_host_config(args.config)
    overrides = {}
    if args.listen:
        overrides["listen"] = args.listen
    if args.port is not None:
        overrides["bridge_port"] = args.port
    if args.bridge is not None:
        overrides["bridge_autostart"] = args.bridge
    if overrides:
        config = dataclasses.replace(config, **overrides)

    host = Host(config, on_bridge_ready=lambda port: print(f"MCP bridge ready on port {port}", flush=True))

    try:
        asyncio.run(host.run(on_started=lambda address: print(f"Host listening on {address}", flush=True)))
    except OSError as exc:
        print(f"Failed to start host: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def run_bridge(args: argparse.Namespace) -> int:
    from bridge.server import serve

    try:
        config = load_bridge_config(host_address=args.host_address, port=args.port)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    log_file = args.log_file or (Path(config.log_file) if config.log_file else None)
    configure_logging(args.log_level or config.log_level, log_file)

    try:
        asyncio.run(serve(config))
    except OSError as exc:
        print(f"Failed to start bridge: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def run_doctor(args: argparse.Namespace) -> int:
    from host.health import check_dependencies, check_host, render_report

    address = args.host_address or os.getenv("MCP_TOOLS_HOST_ADDRESS")
    checks = check_dependencies() + asyncio.run(check_host(address))
    return 0 if render_report(checks) else 1


def _load_host_config(config_path: Optional[Path]) -> HostConfig:
    if not config_path:
        return HostConfig()
    try:
        return load_host_config(config_path)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Failed to load config {config_path}: {exc}")


if __name__ == "__main__":
    raise SystemExit(main())
