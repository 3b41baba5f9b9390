"""Decoding of text encoded upload payloads."""

import base64
import binascii

from media_relay.modules.relay.exceptions import DecodeError


def strip_data_uri_header(payload: str) -> str:
    """Drop everything up to and including the first comma.

    ``data:video/mp4;base64,AAAA`` becomes ``AAAA``; text without a comma is
    returned unchanged.
    """
    _, sep, rest = payload.partition(",")
    return rest if sep else payload


def decode_payload(payload: str) -> bytes:
    """Decode a base64 payload, optionally prefixed with a data URI header.

    Args:
        payload: Text received in the ``video_data`` field

    Returns:
        Decoded bytes

    Raises:
        DecodeError: If the text is not valid base64
    """
    encoded = strip_data_uri_header(payload)
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}") from e
