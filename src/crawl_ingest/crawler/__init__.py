from .crawler import CrawlSummary, Crawler

__all__ = ["CrawlSummary", "Crawler"]
