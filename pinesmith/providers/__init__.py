"""Provider adapters for external services."""
