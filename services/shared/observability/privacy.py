import hashlib
import json
from typing import Any

MASK_CHAR = "*"


def hash_payload(value: Any) -> str:
    """
    Return a stable SHA-256 hash for the provided payload without leaking contents.

    Used for extracted quote fields, prompts and downloaded documents so log lines can
    be correlated across sync passes without storing client data.
    """

    if value is None:
        normalized = b"null"
    elif isinstance(value, bytes):
        normalized = value
    elif isinstance(value, str):
        normalized = value.encode("utf-8")
    else:
        try:
            normalized = json.dumps(value, sort_keys=True, default=str).encode("utf-8")
        except TypeError:
            normalized = repr(value).encode("utf-8")

    return hashlib.sha256(normalized).hexdigest()


def mask_secret(value: str | None, visible: int = 4) -> str:
    """
    Mask a credential for display, keeping only its last `visible` characters.

    Empty values stay empty so callers can tell "not configured" from "hidden".
    """

    if not value:
        return ""
    if len(value) <= visible * 2:
        return MASK_CHAR * len(value)
    return MASK_CHAR * (len(value) - visible) + value[-visible:]


def is_masked(value: str | None) -> bool:
    return bool(value) and value.startswith(MASK_CHAR)
