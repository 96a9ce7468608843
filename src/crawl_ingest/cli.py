"""CLI entrypoint.

Commands:
- `crawl-ingest crawl --config configs/crawl.yaml [--threads N] [--no-progress]`
- `crawl-ingest import -i <file> -o <text file> [--content-type T] [--config configs/crawl.yaml]`
- `crawl-ingest components`
"""

from __future__ import annotations
import argparse
import logging
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .committers.registry import list_committers
from .config.loader import build_importer, load_collector, load_yaml
from .crawler import Crawler
from .exceptions import ConfigError
from .fetch.registry import list_fetchers
from .filters.registry import list_filters
from .handlers import metadata_format
from .handlers.registry import list_handlers
from .importer.engine import ImportEngine, ImporterRequest
from .logging_ import setup_logging
from .stages.registry import list_stages

log = logging.getLogger("crawl_ingest.cli")


def _crawl(args: argparse.Namespace, console: Console) -> int:
    collector = load_collector(args.config)
    if args.threads:
        collector.num_threads = args.threads
    setup_logging(collector.work_dir, collector.run_id, log_dir=collector.log_dir, level=collector.log_level)

    crawler = Crawler(collector, progress=not args.no_progress)
    summary = crawler.start()

    table = Table(title=f"Crawl {summary.run_id}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("processed", str(summary.processed))
    table.add_row("committed", str(summary.committed))
    table.add_row("rejected", str(summary.rejected))
    table.add_row("errors", str(summary.errors))
    if summary.interrupted:
        table.add_row("interrupted", str(summary.interrupted))
    for state, n in sorted(summary.states.items()):
        table.add_row(f"state: {state}", str(n))
    console.print(table)
    return 0


def _import(args: argparse.Namespace, console: Console) -> int:
    cfg = load_yaml(args.config).get("importer") if args.config else None
    engine = ImportEngine(build_importer(cfg))
    resp = engine.import_request(ImporterRequest(path=args.input, content_type=args.content_type))

    out_dir = os.path.dirname(os.path.abspath(args.output))
    os.makedirs(out_dir, exist_ok=True)
    base, ext = os.path.splitext(args.output)
    written = 0
    for node in resp.walk():
        if node.document is None:
            console.print(f"[yellow]{node.status.name}[/yellow] {node.reference}: {node.description}")
            continue
        path = args.output if written == 0 else f"{base}-{written}{ext}"
        with open(path, "wb") as f:
            node.document.content.copy_to(f)
        if args.metadata:
            with open(path + ".meta.txt", "w", encoding="utf-8") as f:
                f.write(metadata_format.serialize(node.document.metadata))
        console.print(f"[green]{node.status.name}[/green] {node.reference} -> {path}")
        node.document.dispose()
        written += 1
    return 0 if resp.is_success else 1


def _components(console: Console) -> int:
    table = Table(title="Registered components")
    table.add_column("Family")
    table.add_column("Type")
    table.add_column("Registration")
    for family, listing in (
        ("fetcher", list_fetchers()),
        ("filter", list_filters()),
        ("handler", list_handlers()),
        ("committer", list_committers()),
        ("stage", list_stages()),
    ):
        for name, how in listing.items():
            table.add_row(family, name, how)
    console.print(table)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="crawl-ingest")
    sub = p.add_subparsers(dest="cmd", required=True)

    pc = sub.add_parser("crawl", help="run a crawl from a YAML config")
    pc.add_argument("--config", required=True)
    pc.add_argument("--threads", type=int, default=None, help="override run.num_threads")
    pc.add_argument("--no-progress", action="store_true", help="disable the progress bar")

    pi = sub.add_parser("import", help="import a single file and write its extracted text")
    pi.add_argument("-i", "--input", required=True)
    pi.add_argument("-o", "--output", required=True)
    pi.add_argument("-t", "--content-type", default=None)
    pi.add_argument("-c", "--config", default=None, help="YAML whose 'importer' section configures the import")
    pi.add_argument("--metadata", action="store_true", help="also write <output>.meta.txt")

    sub.add_parser("components", help="list registered component types")

    args = p.parse_args(argv)
    console = Console()
    try:
        if args.cmd == "crawl":
            return _crawl(args, console)
        if args.cmd == "import":
            logging.basicConfig(level=logging.WARNING)
            return _import(args, console)
        return _components(console)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
