"""Storage layer: repository interfaces, in-memory repositories and locks."""
