"""Infrastructure layer -- graph storage, traversal engines, serialization, caching."""
