"""
Core primitives: data model, typed errors, logging, settings, references, reader.
"""

from atmosfeed.core.errors import (
    AtmosfeedError,
    AuthenticationError,
    ConfigError,
    ErrorCategory,
    InvalidStateError,
    RecordConflictError,
    RemoteWriteError,
    ResolutionError,
    ValidationError,
)
from atmosfeed.core.models import (
    NO_PIN,
    Artifact,
    Feed,
    FeedEdit,
    FeedPartition,
    FeedState,
    NetworkFeedRecord,
    PinnedPostReference,
    RegistryFeedMetadata,
    Session,
    StructuredUserdata,
)

__all__ = [
    # errors
    "AtmosfeedError",
    "AuthenticationError",
    "ConfigError",
    "ErrorCategory",
    "InvalidStateError",
    "RecordConflictError",
    "RemoteWriteError",
    "ResolutionError",
    "ValidationError",
    # models
    "NO_PIN",
    "Artifact",
    "Feed",
    "FeedEdit",
    "FeedPartition",
    "FeedState",
    "NetworkFeedRecord",
    "PinnedPostReference",
    "RegistryFeedMetadata",
    "Session",
    "StructuredUserdata",
]
