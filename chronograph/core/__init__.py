"""Storage backends and factories."""
