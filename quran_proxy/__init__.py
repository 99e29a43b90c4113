"""
Caching proxy for the Quran Foundation content API.

The service fronts an OAuth2-protected upstream with a category-partitioned
TTL cache and exposes the JSON surface consumed by the memorization app.
"""
