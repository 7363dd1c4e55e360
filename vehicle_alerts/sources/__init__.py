"""
Sources package - Adapters for vehicle listing sites.

Each adapter handles:
1. Fetching the listing page and detail pages
2. Extracting (external_id, detail_url) pairs for discovery
3. Extracting the attribute bag of one listing for extraction
"""

from .base import SourceAdapter, HttpFetcher
from .autoscout import AutoScoutAdapter

__all__ = [
    "SourceAdapter",
    "HttpFetcher",
    "AutoScoutAdapter",
]
