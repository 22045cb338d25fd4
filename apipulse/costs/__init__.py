"""Cost tracking — per-provider billing usage strategies."""
