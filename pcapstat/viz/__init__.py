"""Visualization helpers for analysis results."""

from .peers import peer_rows, render_peers
from .report import generate_report
from .timeline import render_timeline

__all__ = ["generate_report", "peer_rows", "render_peers", "render_timeline"]
