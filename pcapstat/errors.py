"""Error types surfaced by capture analysis."""

from __future__ import annotations

from typing import Optional


class AnalysisError(Exception):
    """Base class for every error raised by pcapstat."""


class InvalidAddressError(AnalysisError, ValueError):
    """Raised when the target address does not parse as an IPv4/IPv6 address."""

    def __init__(self, address: str) -> None:
        super().__init__(f"invalid target IP: {address!r}")
        self.address = address


class FormatError(AnalysisError):
    """Raised when a capture container is malformed or truncated."""

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)
        self.offset = offset


__all__ = ["AnalysisError", "FormatError", "InvalidAddressError"]
