"""Extract network-layer endpoints from raw link-layer frames."""

from __future__ import annotations

import ipaddress
import struct
from typing import Any, NamedTuple, Optional, Union

import dpkt

from pcapstat.logging_utils import get_logger
from pcapstat.parser.frames import (
    LINKTYPE_LINUX_SLL,
    LINKTYPE_LOOP,
    LINKTYPE_NULL,
    LINKTYPE_RAW,
    LINKTYPE_RAW_LEGACY,
    LINKTYPE_RAW_OPENBSD,
    Frame,
)

LOGGER = get_logger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_RAW_LINK_TYPES = frozenset({LINKTYPE_RAW, LINKTYPE_RAW_LEGACY, LINKTYPE_RAW_OPENBSD})
_LOOPBACK_LINK_TYPES = frozenset({LINKTYPE_NULL, LINKTYPE_LOOP})
LOOPBACK_HEADER_LENGTH = 4


class Endpoints(NamedTuple):
    """Source/destination pair of a frame, or the non-addressable marker."""

    source: Optional[IPAddress]
    destination: Optional[IPAddress]
    addressable: bool


NOT_ADDRESSABLE = Endpoints(None, None, False)


def normalize_address(address: IPAddress) -> IPAddress:
    """Fold IPv4-mapped IPv6 addresses onto their IPv4 form."""

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def decode_frame(frame: Frame) -> Endpoints:
    """Return the IPv4/IPv6 source and destination carried by ``frame``.

    Frames without a recognisable network header (ARP, unknown ether types,
    truncated headers) are reported as not addressable rather than raising.
    """

    try:
        network = _network_layer(frame.link_type, frame.data)
    except (dpkt.UnpackError, ValueError, IndexError, struct.error) as exc:
        LOGGER.debug("Frame at %s is not decodable: %s", frame.timestamp_ns, exc)
        return NOT_ADDRESSABLE

    if not isinstance(network, (dpkt.ip.IP, dpkt.ip6.IP6)):
        return NOT_ADDRESSABLE

    try:
        source = ipaddress.ip_address(bytes(network.src))
        destination = ipaddress.ip_address(bytes(network.dst))
    except ValueError:
        return NOT_ADDRESSABLE
    return Endpoints(normalize_address(source), normalize_address(destination), True)


def _network_layer(link_type: int, buf: bytes) -> Any:
    if link_type in _RAW_LINK_TYPES:
        return _raw_ip(buf)
    if link_type in _LOOPBACK_LINK_TYPES:
        return _raw_ip(buf[LOOPBACK_HEADER_LENGTH:])
    if link_type == LINKTYPE_LINUX_SLL:
        return dpkt.sll.SLL(buf).data
    return dpkt.ethernet.Ethernet(buf).data


def _raw_ip(buf: bytes) -> Any:
    if not buf:
        return None
    version = buf[0] >> 4
    if version == 4:
        return dpkt.ip.IP(buf)
    if version == 6:
        return dpkt.ip6.IP6(buf)
    return None


__all__ = ["Endpoints", "IPAddress", "NOT_ADDRESSABLE", "decode_frame", "normalize_address"]
