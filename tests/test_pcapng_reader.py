"""Tests for the pcapng block reader."""

import io
import struct
import sys
from pathlib import Path

import dpkt
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from builders import (
    eth_ipv4,
    ng_block,
    ng_enhanced_packet,
    ng_interface,
    ng_interface_statistics,
    ng_name_resolution,
    ng_obsolete_packet,
    ng_section_header,
    ng_simple_packet,
    pcapng,
)
from pcapstat.errors import FormatError
from pcapstat.parser import PcapngReader
from pcapstat.parser.frames import LINKTYPE_ETHERNET, LINKTYPE_RAW

BASE_US = 1_700_000_000 * 1_000_000
PACKET = eth_ipv4("10.0.0.1", "10.0.0.2", b"abc")


def test_enhanced_packets_with_default_microsecond_resolution() -> None:
    capture = pcapng([(BASE_US * 1000, PACKET), ((BASE_US + 1_500_000) * 1000, PACKET)])

    frames = list(PcapngReader(capture))

    assert [frame.timestamp_ns for frame in frames] == [BASE_US * 1000, (BASE_US + 1_500_000) * 1000]
    assert frames[0].data == PACKET
    assert frames[0].captured_length == len(PACKET)


def test_non_packet_blocks_are_skipped() -> None:
    capture = (
        ng_section_header()
        + ng_interface()
        + ng_name_resolution()
        + ng_enhanced_packet(BASE_US, PACKET)
        + ng_interface_statistics()
        + ng_block(0x00000BAD, b"custom-data")
        + ng_enhanced_packet(BASE_US + 1, PACKET)
    )

    frames = list(PcapngReader(capture))

    assert len(frames) == 2


def test_interface_timestamp_resolution_and_offset() -> None:
    capture = (
        ng_section_header()
        + ng_interface(tsresol=9)
        + ng_interface(tsresol=0x80 | 10, tsoffset=100)
        + ng_enhanced_packet(1_234_567_891, PACKET, interface_id=0)
        + ng_enhanced_packet(2048, PACKET, interface_id=1)
    )

    nano, binary = list(PcapngReader(capture))

    assert nano.timestamp_ns == 1_234_567_891
    assert nano.interface_id == 0
    # 2048 ticks of 1/1024 s plus a 100 s offset.
    assert binary.timestamp_ns == 102 * 1_000_000_000
    assert binary.interface_id == 1


def test_big_endian_section_and_section_reset() -> None:
    capture = (
        ng_section_header(">")
        + ng_interface(byte_order=">")
        + ng_enhanced_packet(BASE_US, PACKET, byte_order=">")
        + ng_section_header("<")
        + ng_interface(byte_order="<")
        + ng_enhanced_packet(BASE_US + 10, PACKET, byte_order="<")
    )
    reader = PcapngReader(capture)

    frames = list(reader)

    assert [frame.timestamp_ns for frame in frames] == [BASE_US * 1000, (BASE_US + 10) * 1000]
    assert reader.sections == 2
    assert reader.byte_order == "<"


def test_new_section_forgets_previous_interfaces() -> None:
    capture = (
        ng_section_header()
        + ng_interface()
        + ng_section_header()
        + ng_enhanced_packet(BASE_US, PACKET)
    )

    with pytest.raises(FormatError, match="undeclared interface"):
        list(PcapngReader(capture))


def test_link_type_is_ethernet_unless_interface_type_is_honored() -> None:
    capture = pcapng([(BASE_US * 1000, PACKET)], link_type=LINKTYPE_RAW)

    assert next(PcapngReader(capture)).link_type == LINKTYPE_ETHERNET
    assert next(PcapngReader(capture, honor_interface_link_type=True)).link_type == LINKTYPE_RAW


def test_simple_and_obsolete_packet_blocks() -> None:
    capture = (
        ng_section_header()
        + ng_interface()
        + ng_obsolete_packet(BASE_US, PACKET)
        + ng_simple_packet(PACKET)
    )

    obsolete, simple = list(PcapngReader(capture))

    assert obsolete.timestamp_ns == BASE_US * 1000
    assert simple.data == PACKET
    assert simple.timestamp_ns == obsolete.timestamp_ns


def test_snaplen_limits_simple_packet_data() -> None:
    capture = ng_section_header() + ng_interface(snaplen=20) + ng_simple_packet(PACKET)

    frame = next(PcapngReader(capture))

    assert frame.data == PACKET[:20]
    assert frame.original_length == len(PACKET)


def test_section_without_packets_yields_nothing() -> None:
    assert list(PcapngReader(ng_section_header() + ng_interface())) == []


@pytest.mark.parametrize("cut", [3, 9, 30])
def test_truncated_block_raises(cut: int) -> None:
    capture = pcapng([(BASE_US * 1000, PACKET)])

    with pytest.raises(FormatError):
        list(PcapngReader(capture[:-cut]))


def test_trailing_length_mismatch_raises() -> None:
    block = bytearray(ng_enhanced_packet(BASE_US, PACKET))
    block[-4:] = struct.pack("<I", len(block) + 4)
    capture = ng_section_header() + ng_interface() + bytes(block)

    with pytest.raises(FormatError, match="length mismatch"):
        list(PcapngReader(capture))


def test_unaligned_block_length_raises() -> None:
    capture = ng_section_header() + ng_interface() + struct.pack("<II", 6, 13) + b"\x00" * 9

    with pytest.raises(FormatError, match="invalid block length"):
        list(PcapngReader(capture))


@pytest.mark.parametrize(
    "capture, message",
    [
        (ng_interface(), "first block is not a section header"),
        (ng_section_header(major=2), "unsupported pcapng version"),
        (b"\x0a\x0d\x0d\x0a\x1c\x00\x00\x00" + b"\x00" * 20, "byte-order magic"),
        (b"\x0a\x0d\x0d\x0a\x1c", "truncated block header"),
    ],
)
def test_malformed_section_header(capture: bytes, message: str) -> None:
    with pytest.raises(FormatError, match=message):
        PcapngReader(capture)


def test_captured_length_overrunning_block_raises() -> None:
    body = struct.pack("<IIIII", 0, 0, 0, 500, 500) + PACKET
    capture = ng_section_header() + ng_interface() + ng_block(0x00000006, body)

    with pytest.raises(FormatError, match="overruns"):
        list(PcapngReader(capture))


def test_reads_capture_written_by_dpkt() -> None:
    buf = io.BytesIO()
    writer = dpkt.pcapng.Writer(buf, snaplen=65535, linktype=dpkt.pcap.DLT_EN10MB)
    writer.writepkt(PACKET, ts=1_700_000_000.5)
    writer.writepkt(PACKET, ts=1_700_000_001.75)

    frames = list(PcapngReader(buf.getvalue()))

    assert [frame.timestamp_ns for frame in frames] == [1_700_000_000_500_000_000, 1_700_000_001_750_000_000]
    assert all(frame.data == PACKET for frame in frames)


def test_enhanced_packet_options_do_not_leak_into_packet_data() -> None:
    ticks = BASE_US + 7
    block = dpkt.pcapng.EnhancedPacketBlockLE(
        ts_high=ticks >> 32,
        ts_low=ticks & 0xFFFFFFFF,
        pkt_data=PACKET,
        opts=[
            dpkt.pcapng.PcapngOptionLE(code=dpkt.pcapng.PCAPNG_OPT_COMMENT, text="retransmitted"),
            dpkt.pcapng.PcapngOptionLE(code=dpkt.pcapng.PCAPNG_OPT_ENDOFOPT),
        ],
    )
    capture = ng_section_header() + ng_interface() + bytes(block)

    frame = next(PcapngReader(capture))

    assert frame.data == PACKET
    assert frame.original_length == len(PACKET)
    assert frame.timestamp_ns == ticks * 1000


def test_interface_block_shorter_than_its_header_raises() -> None:
    capture = ng_section_header() + ng_block(0x00000001, b"\x01\x00\x00\x00")

    with pytest.raises(FormatError, match="malformed InterfaceDescriptionBlock"):
        list(PcapngReader(capture))
