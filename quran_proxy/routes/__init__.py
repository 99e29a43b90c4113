"""HTTP routers for the Quran proxy API."""
