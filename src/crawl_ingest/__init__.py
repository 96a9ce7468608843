"""crawl_ingest

Pipeline execution and document-processing engine for crawlers and
content-ingestion jobs.

Public API surface:
- crawl_ingest.cli.main : CLI entrypoint
- crawl_ingest.crawler.Crawler : worker pool running fetch -> filter -> import -> commit
- crawl_ingest.importer.ImportEngine : parse + handler chains with embedded expansion
- crawl_ingest.fetch / filters / handlers / committers : pluggable components

Every pluggable component family has its own registry so new types can be
added without touching pipeline code.
"""
__all__ = ["__version__"]
__version__ = "0.3.0"
