"""
Request dependencies shared by the tenant-scoped routes.

Authentication lives in front of this service; it forwards the resolved
organization as the X-Org-Id header.
"""
import uuid
from typing import Optional

from fastapi import Header, HTTPException


async def get_org_id(
    x_org_id: Optional[str] = Header(None, alias="X-Org-Id"),
) -> uuid.UUID:
    """Tenant scope for the request. 401 when absent, 400 when not a UUID."""
    if not x_org_id:
        raise HTTPException(status_code=401, detail="Missing X-Org-Id header")
    try:
        return uuid.UUID(x_org_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-Org-Id header")
