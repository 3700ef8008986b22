import hmac
import re
from typing import Optional
from fastapi import Header, HTTPException, status
from milestone_refunds.config import API_KEY

_UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail={"error": {"code": "UNAUTHORIZED", "message": "Invalid or missing API key"}},
)

_DONOR_ID = re.compile(r"^[a-zA-Z0-9_-]{1,50}$")


async def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> str:
    """Verify API key using constant-time comparison to prevent timing attacks."""
    if not x_api_key:
        raise _UNAUTHORIZED
    if not hmac.compare_digest(x_api_key.encode(), API_KEY.encode()):
        raise _UNAUTHORIZED
    return x_api_key


async def require_donor_id(x_donor_id: Optional[str] = Header(None, alias="X-Donor-ID")) -> str:
    """Identify the donor acting on their own decisions. Identity is asserted by the upstream gateway."""
    if not x_donor_id or not _DONOR_ID.match(x_donor_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "DONOR_IDENTITY_REQUIRED", "message": "Missing or invalid X-Donor-ID header"}},
        )
    return x_donor_id
