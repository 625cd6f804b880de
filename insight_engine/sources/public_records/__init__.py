"""
Public records data source module.

Provides county assessor, recorder (deeds), tax and permit data, plus
comparable sales and neighborhood aggregates.

Requires PUBLIC_RECORDS_API_KEY; without it the provider is skipped.
"""

__all__ = ["adapter", "client", "metadata"]
