"""
Observability helpers shared by the API process and the sync script.
"""

from .privacy import hash_payload, is_masked, mask_secret
from .telemetry import (
    CORRELATION_ID_HEADER,
    ContextToken,
    bind_request_context,
    bind_sync_context,
    configure_logging,
    current_request_id,
    ensure_request_id,
    reset_request_context,
    reset_sync_context,
    setup_telemetry,
)

__all__ = [
    "hash_payload",
    "is_masked",
    "mask_secret",
    "CORRELATION_ID_HEADER",
    "ContextToken",
    "bind_request_context",
    "bind_sync_context",
    "configure_logging",
    "current_request_id",
    "ensure_request_id",
    "reset_request_context",
    "reset_sync_context",
    "setup_telemetry",
]
