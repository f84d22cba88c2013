"""
Command-line interface for the Atmosfeed client.

Entry point: ``atmosfeed-client`` (see ``pyproject.toml``).
"""
