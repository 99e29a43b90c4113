"""
Root conftest for the Quran proxy test suite.

Sets required environment variables BEFORE any quran_proxy module is
imported, so that ``quran_proxy.config.Settings`` can instantiate without
raising a ``ValidationError`` for the missing Quran API credentials.
"""

import os

# Must be set before any import of quran_proxy.config triggers Settings()
os.environ.setdefault("QURAN_CLIENT_ID", "test-client-id")
os.environ.setdefault("QURAN_CLIENT_SECRET", "test-client-secret")
