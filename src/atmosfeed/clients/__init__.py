"""HTTP clients for the registry and the network."""

from atmosfeed.clients.network import FEED_GENERATOR_COLLECTION, NetworkClient, feed_generator_record
from atmosfeed.clients.registry import RegistryClient

__all__ = [
    "FEED_GENERATOR_COLLECTION",
    "NetworkClient",
    "RegistryClient",
    "feed_generator_record",
]
