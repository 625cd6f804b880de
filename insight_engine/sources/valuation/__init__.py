"""
Valuation data source module.

Provides automated value estimates, comparables, neighborhood
demographics and regional market trends.

Requires VALUATION_API_KEY; without it the provider is skipped.
"""

__all__ = ["adapter", "client", "metadata"]
