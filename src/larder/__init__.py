"""
Larder household grocery service.

The package exposes the HTTP API, persistence helpers, and the recipe-to-list
conversion and purchase ledger logic shared by the server and the CLI.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
