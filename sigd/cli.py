from __future__ import annotations

import argparse
import asyncio
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import (
    HubRuntimeConfig,
    apply_config_data,
    apply_environment,
    load_toml,
    parse_port,
)
from .constants import DEFAULT_HOST, DEFAULT_PORT
from .logging_config import configure_logging
from .paths import default_config_path, ensure_private_dir
from .service import HubService
from .util import expand_path


def _write_default_config(config_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# sigd configuration (TOML)
#
# Every key is optional. The PORT environment variable overrides `port`,
# and command-line flags override both.

[hub]

# Listening address and port for WebSocket clients.
host = {DEFAULT_HOST!r}
port = {DEFAULT_PORT}

# Random bytes per connection identity (hex encoded on the wire).
identity_bytes = 8

# WebSocket keepalive. 0 disables.
ws_ping_interval_s = 20.0
ws_ping_timeout_s = 20.0

# Log a one-line stats report every N seconds. 0 disables.
stats_interval_s = 0.0

[logging]

# Log level for sigd itself.
level = "INFO"

# Log level for the websockets library.
ws_level = "WARNING"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sigd", description="Run a WebRTC signaling relay"
    )

    p.add_argument(
        "--config",
        default=None,
        help="Path to a TOML config file (default: $SIGD_CONFIG, then ~/.sigd/sigd.toml if present)",
    )
    p.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file to the config path and exit",
    )

    p.add_argument("--host", default=None, help="Listening address")
    p.add_argument(
        "--port",
        default=None,
        help="Listening port (default: $PORT, then 8080)",
    )

    p.add_argument(
        "--ws-ping-interval",
        type=float,
        default=None,
        help="WebSocket keepalive ping interval seconds (0 disables)",
    )
    p.add_argument(
        "--ws-ping-timeout",
        type=float,
        default=None,
        help="Close a connection if a ping is not answered in time (0 disables)",
    )
    p.add_argument(
        "--stats-interval",
        type=float,
        default=None,
        help="Periodic stats report interval seconds (0 disables)",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace, environ=None) -> HubRuntimeConfig:
    env = os.environ if environ is None else environ

    explicit = args.config or env.get("SIGD_CONFIG") or None
    config_path = expand_path(str(explicit)) if explicit else str(default_config_path())

    cfg = HubRuntimeConfig(config_path=config_path)
    if explicit or os.path.exists(config_path):
        cfg = apply_config_data(cfg, load_toml(config_path))

    cfg = apply_environment(cfg, env)

    if args.host is not None:
        cfg = replace(cfg, host=str(args.host))
    if args.port is not None:
        cfg = replace(cfg, port=parse_port(args.port))

    if args.ws_ping_interval is not None:
        cfg = replace(cfg, ws_ping_interval_s=float(args.ws_ping_interval))
    if args.ws_ping_timeout is not None:
        cfg = replace(cfg, ws_ping_timeout_s=float(args.ws_ping_timeout))
    if args.stats_interval is not None:
        cfg = replace(cfg, stats_interval_s=float(args.stats_interval))

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    if args.init_config:
        explicit = args.config or os.environ.get("SIGD_CONFIG")
        config_path = expand_path(explicit) if explicit else str(default_config_path())
        if os.path.exists(config_path):
            print(f"Config already exists: {config_path}", file=sys.stderr)
            raise SystemExit(1)
        _write_default_config(config_path)
        print(f"Created default sigd config: {config_path}", file=sys.stderr)
        raise SystemExit(0)

    try:
        cfg = build_config(args)
    except (OSError, ValueError) as e:
        print(f"sigd: configuration error: {e}", file=sys.stderr)
        raise SystemExit(2) from e

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    svc = HubService(cfg)
    asyncio.run(svc.run())


if __name__ == "__main__":
    main()
