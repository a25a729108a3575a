from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace

from .constants import DEFAULT_HOST, DEFAULT_PORT, IDENTITY_BYTES


@dataclass(frozen=True)
class HubRuntimeConfig:
    config_path: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    identity_bytes: int = IDENTITY_BYTES
    ws_ping_interval_s: float = 20.0
    ws_ping_timeout_s: float = 20.0
    stats_interval_s: float = 0.0
    log_level: str = "INFO"
    log_ws_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    log_datefmt: str | None = None


def parse_port(value) -> int:
    try:
        port = int(str(value).strip())
    except Exception as e:
        raise ValueError(f"invalid port {value!r}") from e
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return port


def load_toml(path: str) -> dict:
    import tomllib

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: HubRuntimeConfig, data: dict) -> HubRuntimeConfig:
    hub = data.get("hub") if isinstance(data, dict) else None
    if isinstance(hub, dict):
        data = {**data, **hub}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped: dict[str, object] = {}
        for key in ("level", "ws_level", "console", "file", "format", "datefmt"):
            if key in log_table:
                mapped[f"log_{key}"] = log_table.get(key)
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where the file was loaded from; do not let the file override it.
    allowed.discard("config_path")

    updates = {k: v for k, v in data.items() if k in allowed}

    if "port" in updates:
        updates["port"] = parse_port(updates["port"])
    if "identity_bytes" in updates:
        updates["identity_bytes"] = max(1, int(updates["identity_bytes"]))
    for float_key in ("ws_ping_interval_s", "ws_ping_timeout_s", "stats_interval_s"):
        if float_key in updates:
            updates[float_key] = float(updates[float_key])
    if "log_file" in updates and updates["log_file"] == "":
        updates["log_file"] = None
    if "log_datefmt" in updates and updates["log_datefmt"] == "":
        updates["log_datefmt"] = None

    return replace(base, **updates) if updates else base


def apply_environment(
    base: HubRuntimeConfig, environ: Mapping[str, str] | None = None
) -> HubRuntimeConfig:
    """Apply PORT, SIGD_HOST and SIGD_LOG_LEVEL from the process environment."""
    env = os.environ if environ is None else environ
    cfg = base

    port = env.get("PORT")
    if port is not None and str(port).strip():
        cfg = replace(cfg, port=parse_port(port))

    host = env.get("SIGD_HOST")
    if host is not None and host.strip():
        cfg = replace(cfg, host=host.strip())

    level = env.get("SIGD_LOG_LEVEL")
    if level is not None and level.strip():
        cfg = replace(cfg, log_level=level.strip())

    return cfg
