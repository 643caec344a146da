"""Interactive per-second traffic timeline using Plotly."""

from __future__ import annotations

from pathlib import Path
from typing import List

import plotly.express as px

from pcapstat.analysis.result import AnalysisResult
from pcapstat.logging_utils import get_logger

LOGGER = get_logger(__name__)

PLACEHOLDER_HTML = """
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>pcapstat timeline</title></head>
<body><h1>pcapstat timeline</h1><p>No traffic to or from the target address.</p></body>
</html>
"""


def _to_plot_rows(result: AnalysisResult) -> List[dict]:
    rows: List[dict] = []
    seconds = sorted(set(result.sent_time) | set(result.received_time))
    for second in seconds:
        rows.append(
            {
                "second": second,
                "direction": "sent",
                "packets": result.sent_time.get(second, 0),
                "bytes": result.sent_size.get(second, 0),
            }
        )
        rows.append(
            {
                "second": second,
                "direction": "received",
                "packets": result.received_time.get(second, 0),
                "bytes": None,
            }
        )
    return rows


def render_timeline(result: AnalysisResult, output_dir: str | Path) -> Path:
    """Render packets sent and received per second into ``timeline.html``."""

    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    output_path = target_dir / "timeline.html"

    rows = _to_plot_rows(result)
    if not rows:
        output_path.write_text(PLACEHOLDER_HTML, encoding="utf-8")
        LOGGER.info("No timeline data; wrote placeholder to %s", output_path)
        return output_path

    fig = px.line(
        rows,
        x="second",
        y="packets",
        color="direction",
        markers=True,
        hover_data={"second": True, "packets": True, "bytes": True},
        category_orders={"direction": ["sent", "received"]},
        labels={"second": "Seconds since first packet", "packets": "Packets", "direction": "Direction"},
        title="pcapstat timeline",
    )
    fig.update_layout(hovermode="x unified")

    fig.write_html(output_path, include_plotlyjs="cdn", full_html=True)
    LOGGER.info("Wrote timeline with %s points to %s", len(rows), output_path)
    return output_path


__all__ = ["render_timeline"]
