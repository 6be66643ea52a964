"""External services: storage backend and authentication."""
