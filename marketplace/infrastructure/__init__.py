"""Infrastructure layer: configuration, persistence, locking, audit sinks."""
