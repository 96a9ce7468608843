"""Generate summary report after a crawl.

Called at the end of `Crawler.start()` with the run manifest.
"""

from __future__ import annotations
import os
from datetime import datetime
from typing import Any, Dict, Optional

from ..storage.writer import write_text


def generate_summary_report(work_dir: str, run_id: str, manifest: Dict[str, Any], config: Optional[Dict[str, Any]] = None) -> str:
    """Generate summary report file; returns its path."""
    report_path = os.path.join(work_dir, "reports", f"{run_id}_summary.txt")

    lines = []
    lines.append("=" * 70)
    lines.append("CRAWL INGEST - RUN SUMMARY REPORT")
    lines.append("=" * 70)
    lines.append("")
    lines.append(f"Run ID: {run_id}")
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append(f"Duration: {manifest.get('duration_s', 0)}s")
    lines.append(f"Threads: {manifest.get('num_threads', 1)}")
    if manifest.get("stopped"):
        lines.append("Stopped before completion: yes")
    lines.append("")

    # Component section
    if config:
        lines.append("=" * 70)
        lines.append("CONFIGURATION")
        lines.append("=" * 70)
        lines.append("")
        refs = config.get("start_references") or []
        lines.append(f"Start references: {len(refs)}")
        if config.get("start_references_file"):
            lines.append(f"Start references file: {config['start_references_file']}")
        for section in ("fetchers", "reference_filters", "metadata_filters", "document_filters", "committers"):
            entries = config.get(section) or []
            if entries:
                kinds = ", ".join(str(e.get("type", "?")) for e in entries)
                lines.append(f"{section}: {kinds}")
        importer = config.get("importer") or {}
        for key in ("pre_parse_handlers", "post_parse_handlers"):
            entries = importer.get(key) or []
            if entries:
                lines.append(f"importer.{key}: " + ", ".join(str(e.get("type", "?")) for e in entries))
        lines.append("")

    # Statistics
    lines.append("=" * 70)
    lines.append("STATISTICS")
    lines.append("=" * 70)
    lines.append("")
    processed = manifest.get("total_processed_docs", 0)
    committed = manifest.get("total_committed_docs", 0)
    rejected = manifest.get("total_rejected_docs", 0)
    lines.append(f"Total Processed: {processed:,} references")
    lines.append(f"Total Committed: {committed:,} documents (including embedded)")
    lines.append(f"Total Rejected: {rejected:,} references")
    lines.append(f"Total Errors: {manifest.get('total_error_docs', 0):,} references")
    if manifest.get("interrupted_docs"):
        lines.append(f"Interrupted: {manifest['interrupted_docs']:,} references")

    if processed == 0:
        lines.append("")
        lines.append("WARNING: No references were processed!")
        lines.append("   Possible reasons:")
        lines.append("   - No start references configured")
        lines.append("   - The crawl was stopped before any worker started")
        lines.append("   - Check logs for detailed error messages")
    else:
        done = manifest.get("states", {}).get("done", 0)
        lines.append(f"Success Rate: {done / processed * 100:.1f}%")
    lines.append("")

    states = manifest.get("states") or {}
    if states:
        lines.append("By final state:")
        for state, n in sorted(states.items()):
            lines.append(f"  {state}: {n:,}")
        lines.append("")

    events = manifest.get("events") or {}
    if events:
        lines.append("=" * 70)
        lines.append("EVENTS")
        lines.append("=" * 70)
        lines.append("")
        for name, n in sorted(events.items()):
            lines.append(f"{name}: {n:,}")
        lines.append("")

    # Output locations
    lines.append("=" * 70)
    lines.append("OUTPUT LOCATIONS")
    lines.append("=" * 70)
    lines.append("")
    lines.append(f"manifest: {os.path.join(work_dir, 'manifests', f'{run_id}.json')}")
    lines.append(f"rejections: {os.path.join(work_dir, 'rejections', 'rejections.jsonl')}")
    lines.append("")

    report_text = "\n".join(lines)

    write_text(report_path, report_text)

    return report_path
