"""Server-side services: audio downloads and email delivery."""

from audiolearn.services.audio_service import AudioDownloadError, AudioService
from audiolearn.services.email_service import EmailDeliveryError, EmailService

__all__ = [
    "AudioDownloadError",
    "AudioService",
    "EmailDeliveryError",
    "EmailService",
]
