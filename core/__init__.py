"""Core infrastructure: config, models, storage, event bus."""
