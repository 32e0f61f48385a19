"""Magic-link authentication and cookie sessions."""

from audiolearn.auth.magic_link import (
    GENERIC_REPLY,
    CallbackOutcome,
    CallbackResult,
    check_rate_limit,
    complete_magic_link,
    create_token,
    hash_token,
    request_magic_link,
)

__all__ = [
    "GENERIC_REPLY",
    "CallbackOutcome",
    "CallbackResult",
    "check_rate_limit",
    "complete_magic_link",
    "create_token",
    "hash_token",
    "request_magic_link",
]
