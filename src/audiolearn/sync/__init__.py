"""Content synchronization from the external course-content API."""

from audiolearn.sync.content_api import (
    ContentApiClient,
    ContentApiConfigError,
    ContentApiConnectionError,
    ContentApiError,
    ContentApiResponseError,
)
from audiolearn.sync.content_sync import ContentSyncService, SyncResult, run_sync

__all__ = [
    "ContentApiClient",
    "ContentApiConfigError",
    "ContentApiConnectionError",
    "ContentApiError",
    "ContentApiResponseError",
    "ContentSyncService",
    "SyncResult",
    "run_sync",
]
