"""Capture container format detection."""

from __future__ import annotations

import enum

from pcapstat.errors import FormatError

PCAPNG_MAGIC = b"\x0a\x0d\x0d\x0a"
MAGIC_LENGTH = 4


class CaptureFormat(str, enum.Enum):
    PCAP = "pcap"
    PCAPNG = "pcapng"


def detect_format(capture: bytes | bytearray | memoryview) -> CaptureFormat:
    """Classify a capture by its first four bytes.

    Only the pcapng section header magic is matched here; everything else is
    handed to the classic reader, which resolves the byte order from its own
    magic number and rejects anything it does not recognise.
    """

    magic = bytes(capture[:MAGIC_LENGTH])
    if len(magic) < MAGIC_LENGTH:
        raise FormatError(f"failed to read magic bytes: capture holds only {len(magic)} bytes", offset=0)
    if magic == PCAPNG_MAGIC:
        return CaptureFormat.PCAPNG
    return CaptureFormat.PCAP


__all__ = ["CaptureFormat", "PCAPNG_MAGIC", "detect_format"]
