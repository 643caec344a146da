"""Aggregate traffic counters and the merge used to reduce them."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

DEFAULT_TOP_PEERS = 20


@dataclass
class AnalysisResult:
    """Traffic counters relative to one target address.

    "Sent" counts frames whose source is the target, "received" counts frames
    whose destination is the target. Time-keyed counters use whole seconds
    elapsed since the first frame of the capture; address-keyed counters use
    the peer address in its canonical string form.

    The same type serves as a worker's private partial result and as the final
    merged result handed back to the caller.
    """

    sent_time: Counter = field(default_factory=Counter)
    received_time: Counter = field(default_factory=Counter)
    sent_ip: Counter = field(default_factory=Counter)
    received_ip: Counter = field(default_factory=Counter)
    sent_size: Counter = field(default_factory=Counter)

    def record_sent(self, second: int, peer: str, length: int) -> None:
        self.sent_time[second] += 1
        self.sent_size[second] += length
        self.sent_ip[peer] += 1

    def record_received(self, second: int, peer: str) -> None:
        self.received_time[second] += 1
        self.received_ip[peer] += 1

    def update(self, other: "AnalysisResult") -> None:
        """Add every counter of ``other`` into this result."""

        for name in _COUNTER_FIELDS:
            getattr(self, name).update(getattr(other, name))

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in _COUNTER_FIELDS)

    @property
    def sent_packets(self) -> int:
        return sum(self.sent_time.values())

    @property
    def received_packets(self) -> int:
        return sum(self.received_time.values())

    def to_dict(self) -> Dict[str, Dict[Any, int]]:
        """Return the camelCase mapping consumed by reporting layers."""

        return {json_key: dict(getattr(self, name)) for name, json_key in _JSON_KEYS.items()}


_JSON_KEYS: Dict[str, str] = {
    "sent_time": "sentTime",
    "received_time": "receivedTime",
    "sent_ip": "sentIP",
    "received_ip": "receivedIP",
    "sent_size": "sentSize",
}
_COUNTER_FIELDS = tuple(_JSON_KEYS)


def merge_results(results: Iterable[AnalysisResult]) -> AnalysisResult:
    """Sum partial results key by key into a new result.

    Keys are the union of the inputs' keys and a missing key counts as zero,
    so the merge is associative and commutative. Inputs are left untouched.
    """

    merged = AnalysisResult()
    for partial in results:
        merged.update(partial)
    return merged


def top_peers(counts: Mapping[str, int], limit: int = DEFAULT_TOP_PEERS) -> List[Tuple[str, int]]:
    """Return the ``limit`` busiest peers, highest count first, ties by address."""

    if limit <= 0:
        return []
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


__all__ = ["AnalysisResult", "DEFAULT_TOP_PEERS", "merge_results", "top_peers"]
