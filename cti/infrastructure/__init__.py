"""Infrastructure: caches and persistence."""
