"""Frame representation shared by the container readers and the decoder."""

from __future__ import annotations

from dataclasses import dataclass

# tcpdump.org LINKTYPE_* values understood by the decoder.
LINKTYPE_NULL = 0
LINKTYPE_ETHERNET = 1
LINKTYPE_RAW_LEGACY = 12
LINKTYPE_RAW_OPENBSD = 14
LINKTYPE_RAW = 101
LINKTYPE_LOOP = 108
LINKTYPE_LINUX_SLL = 113

NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class Frame:
    """One link-layer frame pulled out of a capture container.

    ``timestamp_ns`` counts nanoseconds since the Unix epoch. ``data`` holds the
    captured bytes, which may be shorter than ``original_length`` when the
    capture was taken with a small snapshot length.
    """

    timestamp_ns: int
    captured_length: int
    original_length: int
    data: bytes
    link_type: int = LINKTYPE_ETHERNET
    interface_id: int = 0


def relative_second(frame: Frame, epoch_ns: int) -> int:
    """Whole seconds elapsed between the epoch and ``frame``, never negative."""

    delta = frame.timestamp_ns - epoch_ns
    if delta <= 0:
        return 0
    return delta // NANOS_PER_SECOND


__all__ = [
    "Frame",
    "LINKTYPE_ETHERNET",
    "LINKTYPE_LINUX_SLL",
    "LINKTYPE_LOOP",
    "LINKTYPE_NULL",
    "LINKTYPE_RAW",
    "LINKTYPE_RAW_LEGACY",
    "LINKTYPE_RAW_OPENBSD",
    "NANOS_PER_SECOND",
    "relative_second",
]
