"""HomeMatch vibes backfill."""
