"""Reader for classic libpcap capture files."""

from __future__ import annotations

from typing import Dict, Iterator, Tuple, Type

import dpkt

from pcapstat.errors import FormatError
from pcapstat.logging_utils import get_logger
from pcapstat.parser.frames import Frame

LOGGER = get_logger(__name__)

SUPPORTED_MAJOR_VERSION = dpkt.pcap.PCAP_VERSION_MAJOR

# Magic as read big-endian -> (byte order, file header, record header, ticks per second)
_LAYOUTS: Dict[int, Tuple[str, Type[dpkt.pcap.FileHdr], Type[dpkt.pcap.PktHdr], int]] = {
    dpkt.pcap.TCPDUMP_MAGIC: (">", dpkt.pcap.FileHdr, dpkt.pcap.PktHdr, 1_000_000),
    dpkt.pcap.TCPDUMP_MAGIC_NANO: (">", dpkt.pcap.FileHdr, dpkt.pcap.PktHdr, 1_000_000_000),
    dpkt.pcap.PMUDPCT_MAGIC: ("<", dpkt.pcap.LEFileHdr, dpkt.pcap.LEPktHdr, 1_000_000),
    dpkt.pcap.PMUDPCT_MAGIC_NANO: ("<", dpkt.pcap.LEFileHdr, dpkt.pcap.LEPktHdr, 1_000_000_000),
}

FILE_HEADER_LENGTH = dpkt.pcap.FileHdr.__hdr_len__
RECORD_HEADER_LENGTH = dpkt.pcap.PktHdr.__hdr_len__


class PcapReader:
    """Iterate the frames of a classic pcap capture held in memory.

    Headers are decoded with dpkt's ``FileHdr``/``PktHdr`` classes; record
    bounds are checked here so a truncated capture raises instead of ending
    early. The reader is its own iterator and cannot be restarted.
    """

    def __init__(self, capture: bytes | bytearray | memoryview) -> None:
        self._buf = bytes(capture)
        if len(self._buf) < FILE_HEADER_LENGTH:
            raise FormatError(
                f"failed to create pcap reader: file header needs {FILE_HEADER_LENGTH} bytes, got {len(self._buf)}",
                offset=0,
            )

        header = dpkt.pcap.FileHdr(self._buf[:FILE_HEADER_LENGTH])
        if header.magic not in _LAYOUTS:
            raise FormatError(f"failed to create pcap reader: unknown magic 0x{header.magic:08x}", offset=0)
        self.byte_order, file_header_cls, self._record_cls, self._ticks_per_second = _LAYOUTS[header.magic]
        header = file_header_cls(self._buf[:FILE_HEADER_LENGTH])

        if header.v_major != SUPPORTED_MAJOR_VERSION:
            raise FormatError(
                f"failed to create pcap reader: unsupported version {header.v_major}.{header.v_minor}",
                offset=4,
            )

        self.snaplen = header.snaplen
        # Upper bits of the link-type field carry FCS length information.
        self.link_type = header.linktype & 0xFFFF
        self._offset = FILE_HEADER_LENGTH
        LOGGER.debug(
            "pcap header: byte_order=%s resolution=%s snaplen=%s link_type=%s",
            self.byte_order,
            "ns" if self.nanosecond else "us",
            self.snaplen,
            self.link_type,
        )

    @property
    def nanosecond(self) -> bool:
        return self._ticks_per_second == 1_000_000_000

    def __iter__(self) -> Iterator[Frame]:
        return self

    def __next__(self) -> Frame:
        offset = self._offset
        if offset == len(self._buf):
            raise StopIteration

        try:
            record = self._record_cls(self._buf[offset : offset + RECORD_HEADER_LENGTH])
        except dpkt.NeedData:
            self._offset = len(self._buf)
            raise FormatError(
                f"truncated record header: {len(self._buf) - offset} of {RECORD_HEADER_LENGTH} bytes",
                offset=offset,
            ) from None

        if self.snaplen and record.caplen > self.snaplen:
            self._offset = len(self._buf)
            raise FormatError(f"capture length exceeds snap length: {record.caplen} > {self.snaplen}", offset=offset)

        start = offset + RECORD_HEADER_LENGTH
        end = start + record.caplen
        if end > len(self._buf):
            self._offset = len(self._buf)
            raise FormatError(
                f"truncated record body: expected {record.caplen} bytes, got {len(self._buf) - start}",
                offset=start,
            )
        self._offset = end

        timestamp_ns = record.tv_sec * 1_000_000_000 + record.tv_usec * (1_000_000_000 // self._ticks_per_second)
        return Frame(
            timestamp_ns=timestamp_ns,
            captured_length=record.caplen,
            original_length=record.len,
            data=self._buf[start:end],
            link_type=self.link_type,
        )


__all__ = ["PcapReader"]
