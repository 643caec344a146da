"""Reader for block-structured pcapng capture files."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import dpkt
from dpkt import pcapng as ng

from pcapstat.errors import FormatError
from pcapstat.logging_utils import get_logger
from pcapstat.parser.frames import LINKTYPE_ETHERNET, Frame

LOGGER = get_logger(__name__)

BLOCK_HEADER_LENGTH = 8
MIN_BLOCK_LENGTH = 12
SIMPLE_PACKET_HEADER_LENGTH = 12
# Block type and total length precede every packet block body.
PACKET_DATA_OFFSET = ng.EnhancedPacketBlock.__hdr_len__ - 4

# Block type -> (big-endian class, little-endian class)
_PACKET_BLOCKS: Dict[int, Tuple[Any, Any]] = {
    ng.PCAPNG_BT_EPB: (ng.EnhancedPacketBlock, ng.EnhancedPacketBlockLE),
    ng.PCAPNG_BT_PB: (ng.PacketBlock, ng.PacketBlockLE),
}

_BLOCK_NAMES: Dict[int, str] = {
    0x00000004: "name resolution",
    0x00000005: "interface statistics",
    0x00000009: "systemd journal export",
    0x0000000A: "decryption secrets",
    0x00000BAD: "custom",
    0x40000BAD: "custom",
}

_ENDIANNESS = {"<": "little", ">": "big"}


@dataclass
class InterfaceInfo:
    """Per-interface settings declared by an Interface Description Block."""

    link_type: int
    snaplen: int
    tsresol_base: int = 10
    tsresol_exponent: int = 6
    tsoffset_seconds: int = 0

    def to_nanoseconds(self, ticks: int) -> int:
        if self.tsresol_base == 10:
            if self.tsresol_exponent <= 9:
                nanos = ticks * 10 ** (9 - self.tsresol_exponent)
            else:
                nanos = ticks // 10 ** (self.tsresol_exponent - 9)
        else:
            nanos = (ticks * 1_000_000_000) >> self.tsresol_exponent
        return nanos + self.tsoffset_seconds * 1_000_000_000


class PcapngReader:
    """Iterate the packet-carrying blocks of a pcapng capture held in memory.

    Blocks are decoded with dpkt's pcapng block classes. Framing is checked
    here first (length alignment, truncation, trailing length) since dpkt
    does not reject those on its own. The leading Section Header Block is
    validated on construction. Every frame is tagged as Ethernet unless
    ``honor_interface_link_type`` is set, in which case the link type declared
    by the frame's interface is used instead.
    """

    def __init__(
        self,
        capture: bytes | bytearray | memoryview,
        honor_interface_link_type: bool = False,
    ) -> None:
        self._buf = bytes(capture)
        self.honor_interface_link_type = honor_interface_link_type
        self.byte_order = "<"
        self.interfaces: List[InterfaceInfo] = []
        self.sections = 0
        self._offset = 0
        self._last_timestamp_ns = 0

        block = self._next_block()
        if block is None or block[0] != ng.PCAPNG_BT_SHB:
            raise FormatError("failed to create pcapng reader: first block is not a section header", offset=0)
        self._handle_section_header(block[1], block[2])

    def __iter__(self) -> "PcapngReader":
        return self

    def __next__(self) -> Frame:
        while True:
            block = self._next_block()
            if block is None:
                raise StopIteration
            block_type, raw, offset = block

            if block_type == ng.PCAPNG_BT_SHB:
                self._handle_section_header(raw, offset)
            elif block_type == ng.PCAPNG_BT_IDB:
                self._handle_interface_description(raw, offset)
            elif block_type in _PACKET_BLOCKS:
                return self._packet(block_type, raw, offset)
            elif block_type == ng.PCAPNG_BT_SPB:
                return self._simple_packet(raw, offset)
            else:
                LOGGER.debug(
                    "Skipping %s block 0x%08x at offset %s",
                    _BLOCK_NAMES.get(block_type, "unknown"),
                    block_type,
                    offset,
                )

    def _fail(self, message: str, offset: int) -> FormatError:
        # Any structural error ends the stream for every consumer.
        self._offset = len(self._buf)
        return FormatError(message, offset=offset)

    def _decode(self, classes: Tuple[Any, Any], raw: bytes, offset: int) -> Any:
        big_endian_cls, little_endian_cls = classes
        block_cls = little_endian_cls if self.byte_order == "<" else big_endian_cls
        try:
            return block_cls(raw)
        except (dpkt.UnpackError, ValueError) as exc:
            raise self._fail(f"malformed {block_cls.__name__}: {str(exc) or 'not enough data'}", offset) from None

    def _next_block(self) -> Optional[Tuple[int, bytes, int]]:
        offset = self._offset
        remaining = len(self._buf) - offset
        if remaining == 0:
            return None
        if remaining < BLOCK_HEADER_LENGTH:
            raise self._fail(f"truncated block header: {remaining} bytes left", offset)

        # Same peek dpkt's own reader does before it knows the block class.
        block_type = struct.unpack_from(self.byte_order + "I", self._buf, offset)[0]
        if block_type == ng.PCAPNG_BT_SHB:
            # A new section may switch byte order; the magic sits after the length.
            self.byte_order = self._section_byte_order(offset)

        block_length = struct.unpack_from(self.byte_order + "I", self._buf, offset + 4)[0]
        if block_length < MIN_BLOCK_LENGTH or block_length % 4:
            raise self._fail(f"invalid block length {block_length}", offset)
        if block_length > remaining:
            raise self._fail(f"truncated block: length {block_length}, {remaining} bytes left", offset)

        trailer = struct.unpack_from(self.byte_order + "I", self._buf, offset + block_length - 4)[0]
        if trailer != block_length:
            raise self._fail(f"block length mismatch: header {block_length}, trailer {trailer}", offset)

        self._offset = offset + block_length
        return block_type, self._buf[offset : offset + block_length], offset

    def _section_byte_order(self, offset: int) -> str:
        header = ng.SectionHeaderBlock()
        try:
            header.unpack_hdr(self._buf[offset : offset + ng.SectionHeaderBlock.__hdr_len__])
        except struct.error:
            raise self._fail("truncated section header block", offset) from None
        if header.bom == ng.BYTE_ORDER_MAGIC:
            return ">"
        if header.bom == ng.BYTE_ORDER_MAGIC_LE:
            return "<"
        raise self._fail("invalid byte-order magic in section header", offset + 8)

    def _handle_section_header(self, raw: bytes, offset: int) -> None:
        header = self._decode((ng.SectionHeaderBlock, ng.SectionHeaderBlockLE), raw, offset)
        if header.v_major != ng.PCAPNG_VERSION_MAJOR:
            raise self._fail(f"unsupported pcapng version {header.v_major}.{header.v_minor}", offset)
        self.interfaces = []
        self.sections += 1
        LOGGER.debug(
            "pcapng section %s: version %s.%s byte_order=%s",
            self.sections,
            header.v_major,
            header.v_minor,
            self.byte_order,
        )

    def _handle_interface_description(self, raw: bytes, offset: int) -> None:
        block = self._decode((ng.InterfaceDescriptionBlock, ng.InterfaceDescriptionBlockLE), raw, offset)
        interface = InterfaceInfo(link_type=block.linktype, snaplen=block.snaplen)

        for option in block.opts:
            if option.code == ng.PCAPNG_OPT_IF_TSRESOL and len(option.data) >= 1:
                resol = option.data[0]
                interface.tsresol_base = 2 if resol & 0x80 else 10
                interface.tsresol_exponent = resol & 0x7F
            elif option.code == ng.PCAPNG_OPT_IF_TSOFFSET and len(option.data) >= 8:
                interface.tsoffset_seconds = int.from_bytes(
                    option.data[:8], _ENDIANNESS[self.byte_order], signed=True
                )

        self.interfaces.append(interface)
        LOGGER.debug("pcapng interface %s: %s", len(self.interfaces) - 1, interface)

    def _interface(self, interface_id: int, offset: int) -> InterfaceInfo:
        if interface_id >= len(self.interfaces):
            raise self._fail(f"packet refers to undeclared interface {interface_id}", offset)
        return self.interfaces[interface_id]

    def _frame(self, interface_id: int, timestamp_ns: int, data: bytes, original_length: int) -> Frame:
        interface = self.interfaces[interface_id]
        self._last_timestamp_ns = timestamp_ns
        return Frame(
            timestamp_ns=timestamp_ns,
            captured_length=len(data),
            original_length=original_length,
            data=data,
            link_type=interface.link_type if self.honor_interface_link_type else LINKTYPE_ETHERNET,
            interface_id=interface_id,
        )

    def _packet(self, block_type: int, raw: bytes, offset: int) -> Frame:
        block = self._decode(_PACKET_BLOCKS[block_type], raw, offset)
        interface = self._interface(block.iface_id, offset)
        # dpkt slices pkt_data without checking it fits inside the block.
        if PACKET_DATA_OFFSET + block.caplen > len(raw) - 4:
            raise self._fail(f"captured length {block.caplen} overruns packet block", offset)
        timestamp_ns = interface.to_nanoseconds((block.ts_high << 32) | block.ts_low)
        return self._frame(block.iface_id, timestamp_ns, block.pkt_data, block.pkt_len)

    def _simple_packet(self, raw: bytes, offset: int) -> Frame:
        # dpkt has no Simple Packet Block class; its body is one length word and the data.
        if len(raw) < SIMPLE_PACKET_HEADER_LENGTH + 4:
            raise self._fail("truncated simple packet block", offset)
        interface = self._interface(0, offset)
        original = int.from_bytes(
            raw[BLOCK_HEADER_LENGTH:SIMPLE_PACKET_HEADER_LENGTH], _ENDIANNESS[self.byte_order]
        )
        data_end = len(raw) - 4
        captured = min(original, data_end - SIMPLE_PACKET_HEADER_LENGTH)
        if interface.snaplen:
            captured = min(captured, interface.snaplen)
        # Simple packet blocks carry no timestamp of their own.
        data = raw[SIMPLE_PACKET_HEADER_LENGTH : SIMPLE_PACKET_HEADER_LENGTH + captured]
        return self._frame(0, self._last_timestamp_ns, data, original)


__all__ = ["InterfaceInfo", "PcapngReader"]
