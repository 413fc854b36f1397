"""Game-specific configuration factories."""
