"""
Tellet Admin - Terminal-first administration tool for the Tellet API.

A CLI tool that authenticates against the Tellet REST API and drives it
through a rate-limited, retrying, concurrency-bounded client.
"""

__version__ = "0.1.0"
__app_name__ = "tellet-admin"
