"""
Listings data source module.

Provides property facts, area statistics, comparables and price history
from an MLS feed exposed through the RESO Web API (OData).

Requires LISTINGS_ACCESS_TOKEN; without it the provider is skipped.
"""

__all__ = ["adapter", "client", "metadata"]
