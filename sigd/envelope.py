from __future__ import annotations

from .constants import F_FROM, F_ROOM_ID, F_TO, F_TYPE, F_USER_ID, SIGNAL_TYPES, T_JOIN


def make_envelope(msg_type: str, *, user_id: str | None = None) -> dict:
    env: dict[str, object] = {F_TYPE: str(msg_type)}
    if user_id is not None:
        env[F_USER_ID] = user_id
    return env


def make_forward(env: dict, *, src: str) -> dict:
    """Copy a signaling message for delivery: drop `to`, stamp `from`."""
    fwd = dict(env)
    fwd.pop(F_TO, None)
    fwd[F_FROM] = src
    return fwd


def validate_envelope(env) -> None:
    if not isinstance(env, dict):
        raise TypeError("message must be an object")

    for k in env.keys():
        if not isinstance(k, str):
            raise TypeError("message keys must be strings")

    if F_TYPE not in env:
        raise ValueError("missing message type")

    t = env[F_TYPE]
    if not isinstance(t, str):
        raise TypeError("message type must be a string")

    if t == T_JOIN:
        room = env.get(F_ROOM_ID)
        if room is None:
            raise ValueError("join without roomId")
        if not isinstance(room, str):
            raise TypeError("roomId must be a string")
        if room == "":
            raise ValueError("roomId must not be empty")

    elif t in SIGNAL_TYPES:
        to = env.get(F_TO)
        if to is None:
            raise ValueError(f"{t} without target")
        if not isinstance(to, str):
            raise TypeError("target identity must be a string")
        if to == "":
            raise ValueError("target identity must not be empty")
