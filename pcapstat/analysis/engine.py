"""Classify capture frames against a target address and aggregate them in parallel."""

from __future__ import annotations

import ipaddress
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from time import perf_counter
from typing import Iterator, Optional, Tuple

from pcapstat.analysis.result import AnalysisResult, merge_results
from pcapstat.errors import InvalidAddressError
from pcapstat.logging_utils import get_logger
from pcapstat.parser import Frame, decode_frame, normalize_address, open_capture, relative_second
from pcapstat.parser.decode import IPAddress

LOGGER = get_logger(__name__)

# (partial result, frames pulled, addressable frames)
WorkerTally = Tuple[AnalysisResult, int, int]


def parse_target(address: str) -> IPAddress:
    """Parse the target address, folding IPv4-mapped IPv6 onto IPv4."""

    if not isinstance(address, str):
        raise InvalidAddressError(repr(address))
    try:
        parsed = ipaddress.ip_address(address)
    except ValueError:
        raise InvalidAddressError(address) from None
    # A zone index names a local interface, never a capture endpoint.
    if getattr(parsed, "scope_id", None):
        raise InvalidAddressError(address)
    return normalize_address(parsed)


def default_worker_count() -> int:
    return max(1, os.cpu_count() or 1)


class SharedFrameSource:
    """Hand out frames from one iterator to many threads, each frame exactly once.

    Once the iterator is exhausted or raises, every later pull returns ``None``;
    the error itself surfaces in the thread whose pull triggered it.
    """

    def __init__(self, frames: Iterator[Frame]) -> None:
        self._frames = frames
        self._lock = threading.Lock()
        self._closed = False

    def next_frame(self) -> Optional[Frame]:
        with self._lock:
            if self._closed:
                return None
            try:
                return next(self._frames)
            except StopIteration:
                self._closed = True
                return None
            except Exception:
                self._closed = True
                raise


class FrameClassifier:
    """Fold frames into a partial result relative to one target and epoch."""

    def __init__(self, target: IPAddress, epoch_ns: int) -> None:
        self.target = target
        self.epoch_ns = epoch_ns

    def fold(self, frame: Frame, result: AnalysisResult) -> bool:
        """Account ``frame`` into ``result``; return whether it carried IP addresses."""

        endpoints = decode_frame(frame)
        if not endpoints.addressable:
            return False

        second = relative_second(frame, self.epoch_ns)
        if endpoints.source == self.target:
            result.record_sent(second, str(endpoints.destination), frame.captured_length)
        elif endpoints.destination == self.target:
            result.record_received(second, str(endpoints.source))
        return True

    def drain(self, source: SharedFrameSource) -> WorkerTally:
        """Worker body: pull frames until the source closes."""

        result = AnalysisResult()
        pulled = 0
        addressable = 0
        while True:
            frame = source.next_frame()
            if frame is None:
                break
            pulled += 1
            if self.fold(frame, result):
                addressable += 1
        return result, pulled, addressable


class Analyzer:
    """Run the capture analysis with a fixed-size pool of worker threads."""

    def __init__(self, workers: Optional[int] = None, honor_interface_link_type: bool = False) -> None:
        self.workers = max(1, workers) if workers is not None else default_worker_count()
        self.honor_interface_link_type = honor_interface_link_type

    def analyze(self, capture: bytes | bytearray | memoryview, target_address: str) -> AnalysisResult:
        """Aggregate the traffic sent and received by ``target_address`` in ``capture``.

        Raises ``InvalidAddressError`` before touching the capture when the
        target does not parse, and ``FormatError`` for malformed containers.
        """

        target = parse_target(target_address)
        start = perf_counter()
        frames = open_capture(capture, honor_interface_link_type=self.honor_interface_link_type)

        # The epoch must come from the very first frame, before any fan-out.
        first = next(frames, None)
        if first is None:
            LOGGER.info("Capture holds no frames; returning an empty result")
            return AnalysisResult()

        classifier = FrameClassifier(target, first.timestamp_ns)
        source = SharedFrameSource(frames)
        main_result = AnalysisResult()

        LOGGER.debug("Starting %s workers for target %s", self.workers, target)
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="pcapstat-worker") as pool:
            futures = [pool.submit(classifier.drain, source) for _ in range(self.workers)]
            main_addressable = int(classifier.fold(first, main_result))
            wait(futures)

        tallies = [future.result() for future in futures]
        result = merge_results([main_result] + [partial for partial, _, _ in tallies])

        duration = perf_counter() - start
        total_frames = 1 + sum(pulled for _, pulled, _ in tallies)
        addressable = main_addressable + sum(count for _, _, count in tallies)
        LOGGER.info(
            "Analyzed %s frames (%s addressable, %s sent, %s received) for %s with %s workers in %.3f ms",
            total_frames,
            addressable,
            result.sent_packets,
            result.received_packets,
            target,
            self.workers,
            duration * 1000,
        )
        return result


def analyze(capture: bytes | bytearray | memoryview, target_address: str) -> AnalysisResult:
    """Analyze ``capture`` for ``target_address`` using one worker per CPU."""

    return Analyzer().analyze(capture, target_address)


__all__ = ["Analyzer", "FrameClassifier", "SharedFrameSource", "analyze", "default_worker_count", "parse_target"]
