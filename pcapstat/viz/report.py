"""Generate a combined dashboard report."""

from __future__ import annotations

import html
from pathlib import Path
from typing import Optional

from pcapstat.analysis.result import DEFAULT_TOP_PEERS, AnalysisResult
from pcapstat.logging_utils import get_logger
from pcapstat.viz.peers import render_peers
from pcapstat.viz.timeline import render_timeline

LOGGER = get_logger(__name__)


def generate_report(
    result: AnalysisResult,
    output_dir: str | Path,
    limit: int = DEFAULT_TOP_PEERS,
    title: Optional[str] = None,
) -> Path:
    """Write timeline and peers charts plus a ``report.html`` that frames both."""

    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    timeline_path = render_timeline(result, output_dir=target_dir)
    peers_path = render_peers(result, output_dir=target_dir, limit=limit)

    report_path = target_dir / "report.html"
    report_path.write_text(
        _compose_dashboard(result, timeline_path.name, peers_path.name, title or "pcapstat dashboard"),
        encoding="utf-8",
    )

    LOGGER.info("Wrote combined report to %s", report_path)
    return report_path


def _compose_dashboard(result: AnalysisResult, timeline_name: str, peers_name: str, title: str) -> str:
    heading = html.escape(title)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{heading}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 0; padding: 0; }}
    header {{ padding: 1.5rem; background: #1f2933; color: #fff; }}
    main {{ display: flex; flex-direction: column; gap: 2rem; padding: 1.5rem; }}
    section {{ background: #fff; border-radius: 8px; box-shadow: 0 2px 6px rgba(0,0,0,0.08); overflow: hidden; }}
    .section-body {{ padding: 1rem; }}
    iframe {{ width: 100%; border: none; min-height: 480px; }}
  </style>
</head>
<body>
  <header>
    <h1>{heading}</h1>
    <p>{result.sent_packets} packets sent to {len(result.sent_ip)} peers,
       {result.received_packets} packets received from {len(result.received_ip)} peers,
       {sum(result.sent_size.values())} bytes sent.</p>
  </header>
  <main>
    <section>
      <div class="section-body">
        <h2>Timeline</h2>
        <iframe src="{timeline_name}"></iframe>
      </div>
    </section>
    <section>
      <div class="section-body">
        <h2>Top Peers</h2>
        <iframe src="{peers_name}"></iframe>
      </div>
    </section>
  </main>
</body>
</html>
"""


__all__ = ["generate_report"]
