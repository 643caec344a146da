import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from builders import classic_pcap, eth_ipv4_sized

TARGET = "192.168.1.5"
PEER = "192.168.1.1"
BASE_NS = 1_700_000_000 * 1_000_000_000


@pytest.fixture
def target() -> str:
    return TARGET


@pytest.fixture
def peer() -> str:
    return PEER


@pytest.fixture
def base_ns() -> int:
    return BASE_NS


@pytest.fixture
def exchange_pcap() -> bytes:
    """Peer -> target at t=0 and target -> peer at t=+1s, 80 bytes each."""

    return classic_pcap(
        [
            (BASE_NS, eth_ipv4_sized(PEER, TARGET, 80)),
            (BASE_NS + 1_000_000_000, eth_ipv4_sized(TARGET, PEER, 80)),
        ]
    )
