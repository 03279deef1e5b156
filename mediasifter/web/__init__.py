"""Web surface for the GIF editing pipeline."""
