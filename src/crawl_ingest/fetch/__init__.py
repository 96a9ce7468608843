from .base import FetchRequest, FetchResponse, Fetcher
from .coordinator import FetchCoordinator

__all__ = ["FetchRequest", "FetchResponse", "Fetcher", "FetchCoordinator"]
