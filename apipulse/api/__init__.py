"""HTTP surface for API Pulse."""
