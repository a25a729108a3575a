from __future__ import annotations

import json

import cbor2

from .constants import WIRE_CBOR, WIRE_JSON

# Exceptions a malformed frame or an unencodable message can raise. Deeply
# nested input exhausts the recursion limit in both codecs.
DECODE_ERRORS = (ValueError, TypeError, RecursionError, cbor2.CBORDecodeError)
ENCODE_ERRORS = (ValueError, TypeError, RecursionError, cbor2.CBOREncodeError)


def encode(obj, wire: str = WIRE_JSON) -> str | bytes:
    if wire == WIRE_CBOR:
        return cbor2.dumps(obj)
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def decode(data: str | bytes) -> tuple[object, str]:
    """
    Decode one frame.

    Text frames are JSON. Binary frames are CBOR when they hold a CBOR map,
    otherwise UTF-8 JSON (browsers sending a Blob or ArrayBuffer).
    """
    if isinstance(data, (bytes, bytearray)):
        raw = bytes(data)
        try:
            obj = cbor2.loads(raw)
        except DECODE_ERRORS:
            obj = None
        if isinstance(obj, dict):
            return obj, WIRE_CBOR
        return json.loads(raw.decode("utf-8")), WIRE_JSON
    return json.loads(data), WIRE_JSON
