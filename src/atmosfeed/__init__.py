"""
Atmosfeed client - turn classifiers into live feeds on the AT Protocol network.

- atmosfeed.core: data model, errors, logging, settings, reference resolution, reconciliation
- atmosfeed.clients: registry (REST) and network (XRPC) HTTP clients
- atmosfeed.ops: session, feed lifecycle and userdata operations
- atmosfeed.cli: the ``atmosfeed-client`` command line
"""

__version__ = "0.1.0"
