"""Bar chart of the busiest peers of the target address."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import plotly.express as px

from pcapstat.analysis.result import DEFAULT_TOP_PEERS, AnalysisResult, top_peers
from pcapstat.logging_utils import get_logger

LOGGER = get_logger(__name__)


def peer_rows(result: AnalysisResult, limit: int = DEFAULT_TOP_PEERS) -> List[Dict[str, object]]:
    """Flatten the top sent and received peers into chart rows."""

    rows: List[Dict[str, object]] = []
    for direction, counts in (("sent", result.sent_ip), ("received", result.received_ip)):
        for address, count in top_peers(counts, limit=limit):
            rows.append({"peer": address, "direction": direction, "packets": count})
    return rows


def render_peers(result: AnalysisResult, output_dir: str | Path, limit: int = DEFAULT_TOP_PEERS) -> Path:
    """Render the top peers per direction into ``peers.html``."""

    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    output_path = target_dir / "peers.html"

    rows = peer_rows(result, limit=limit)
    if not rows:
        placeholder = """
        <!DOCTYPE html>
        <html lang="en">
        <head><meta charset="utf-8"><title>pcapstat peers</title></head>
        <body><h1>pcapstat peers</h1><p>No peers exchanged traffic with the target address.</p></body>
        </html>
        """
        output_path.write_text(placeholder, encoding="utf-8")
        LOGGER.info("No peers to chart; wrote placeholder to %s", output_path)
        return output_path

    fig = px.bar(
        rows,
        x="peer",
        y="packets",
        color="direction",
        barmode="group",
        labels={"peer": "Peer address", "packets": "Packets", "direction": "Direction"},
        title=f"pcapstat top {limit} peers",
    )
    fig.update_layout(margin=dict(l=40, r=40, t=80, b=40))

    fig.write_html(output_path, include_plotlyjs="cdn", full_html=True)
    LOGGER.info("Wrote peers chart with %s bars to %s", len(rows), output_path)
    return output_path


__all__ = ["peer_rows", "render_peers"]
