"""API key authentication for the streaming endpoint."""

from __future__ import annotations

import hashlib
import secrets

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# EventSource cannot set headers, so browsers authenticate with a cookie
COOKIE_NAME = "turnstream_token"
KEY_PREFIX = "sk_ts_"

_security = HTTPBearer(auto_error=False)


def hash_key(key: str) -> str:
    """SHA-256 hash of an API key for lookup."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def generate_api_key() -> tuple[str, str, str]:
    """Return (raw_key, key_hash, display_prefix) for a new key.

    Only the hash is ever stored; the raw key is shown once.
    """
    raw_key = f"{KEY_PREFIX}{secrets.token_hex(16)}"
    return raw_key, hash_key(raw_key), raw_key[:12] + "..."


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_security),
) -> str:
    """Validate the caller's key against the api_keys table.

    Returns the user_id associated with the key.
    Raises 401 if the key is missing, unknown or revoked.
    """
    token = credentials.credentials if credentials else request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Missing API key")

    user_id = await request.app.state.store.find_api_key_owner(hash_key(token))
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return user_id
