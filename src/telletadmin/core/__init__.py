"""Core components: API client, fetch utilities, configuration, logging."""
