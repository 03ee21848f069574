"""Access key gate for the map and its API."""

from __future__ import annotations

import os
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader, APIKeyQuery

ACCESS_KEY = os.getenv("ADRMAP_ACCESS_KEY")

access_key_header = APIKeyHeader(name="X-Access-Key", auto_error=False)
access_key_query = APIKeyQuery(name="key", auto_error=False)


async def verify_access_key(
    header_key: Optional[str] = Security(access_key_header),
    query_key: Optional[str] = Security(access_key_query),
) -> Optional[str]:
    """Validate the access key if one is configured.

    When ADRMAP_ACCESS_KEY is not set, all requests are allowed (open mode).
    When set, requests must carry it in the X-Access-Key header or in the
    ``key`` query parameter, so the map page can be opened from a browser.
    """
    if ACCESS_KEY is None:
        return None
    key = header_key or query_key
    if key is None or key != ACCESS_KEY:
        raise HTTPException(status_code=403, detail="Invalid or missing access key")
    return key
