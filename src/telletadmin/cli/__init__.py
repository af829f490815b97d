"""Command-line interface for Tellet Admin."""
