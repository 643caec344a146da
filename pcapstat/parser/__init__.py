"""Capture container parsing: format detection, frame readers and decoding."""

from __future__ import annotations

from typing import Iterator

from pcapstat.logging_utils import get_logger

from .decode import Endpoints, decode_frame, normalize_address
from .detect import CaptureFormat, detect_format
from .frames import Frame, relative_second
from .pcap_reader import PcapReader
from .pcapng_reader import PcapngReader

LOGGER = get_logger(__name__)


def open_capture(
    capture: bytes | bytearray | memoryview,
    honor_interface_link_type: bool = False,
) -> Iterator[Frame]:
    """Detect the container format and return a lazy iterator of its frames.

    Header-level problems raise ``FormatError`` here; record-level truncation
    surfaces while iterating.
    """

    capture_format = detect_format(capture)
    LOGGER.debug("Detected %s container (%s bytes)", capture_format.value, len(capture))
    if capture_format is CaptureFormat.PCAPNG:
        return PcapngReader(capture, honor_interface_link_type=honor_interface_link_type)
    return PcapReader(capture)


__all__ = [
    "CaptureFormat",
    "Endpoints",
    "Frame",
    "PcapReader",
    "PcapngReader",
    "decode_frame",
    "detect_format",
    "normalize_address",
    "open_capture",
    "relative_second",
]
