from __future__ import annotations

import os

from .constants import IDENTITY_BYTES


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def new_identity(nbytes: int = IDENTITY_BYTES) -> str:
    # 64 random bits by default; collisions are improbable, not impossible.
    return os.urandom(max(1, int(nbytes))).hex()


def fmt_remote(conn) -> str:
    addr = getattr(conn, "remote_address", None)
    if isinstance(addr, (tuple, list)) and len(addr) >= 2:
        return f"{addr[0]}:{addr[1]}"
    if addr:
        return str(addr)
    return "-"


def payload_size(data: str | bytes) -> int:
    if isinstance(data, str):
        return len(data.encode("utf-8"))
    return len(data)
