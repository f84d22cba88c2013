"""
Operations layer: the functions a UI or CLI calls.

- All functions are async and return ``OperationResult[T]`` (never raise)
- All functions accept an optional ``on_error(error, logged_out)`` channel
- Authentication failures always clear the session

Usage::

    from atmosfeed.ops import FeedController, derive_registry_client, login

    result = await login("alice.bsky.social", "app-password", "https://bsky.social")
    session = result.data
    registry = derive_registry_client(session, "https://manager.atmosfeed.p8.lu")
    controller = FeedController(session, registry, feed_generator_did="did:web:feeds.example.com")
    await controller.refresh()
"""

from atmosfeed.ops.feeds import FeedController
from atmosfeed.ops.result import ErrorChannel, OperationError, OperationResult
from atmosfeed.ops.session import derive_registry_client, login, logout
from atmosfeed.ops.userdata import delete_userdata, export_userdata, write_artifacts

__all__ = [
    "ErrorChannel",
    "FeedController",
    "OperationError",
    "OperationResult",
    "delete_userdata",
    "derive_registry_client",
    "export_userdata",
    "login",
    "logout",
    "write_artifacts",
]
