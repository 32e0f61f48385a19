"""Client-side playback support: progress, read-along, pooling and offline storage."""

from audiolearn.client.api_client import ApiClient, ApiError
from audiolearn.client.audio_pool import AudioPool, BufferedAudio
from audiolearn.client.offline_cache import OfflineFetcher, ResponseCache, Strategy
from audiolearn.client.offline_storage import OfflineStorage, OfflineStorageError
from audiolearn.client.playback_session import NowPlaying, PlaybackSession
from audiolearn.client.progress_tracker import (
    ProgressBatcher,
    ProgressDeliveryError,
    ProgressTransportError,
    ProgressUpdate,
)
from audiolearn.client.read_along import (
    NO_SEGMENT,
    ReadAlongData,
    ReadAlongSegment,
    ReadAlongSync,
    find_active_segment,
    should_scroll,
)

__all__ = [
    "NO_SEGMENT",
    "ApiClient",
    "ApiError",
    "AudioPool",
    "BufferedAudio",
    "NowPlaying",
    "OfflineFetcher",
    "OfflineStorage",
    "OfflineStorageError",
    "PlaybackSession",
    "ProgressBatcher",
    "ProgressDeliveryError",
    "ProgressTransportError",
    "ProgressUpdate",
    "ReadAlongData",
    "ReadAlongSegment",
    "ReadAlongSync",
    "ResponseCache",
    "Strategy",
    "find_active_segment",
    "should_scroll",
]
