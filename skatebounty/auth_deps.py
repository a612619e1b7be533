from __future__ import annotations
import uuid
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from skatebounty.identity import Identity, ANONYMOUS
from skatebounty.security import decode_token

# auto_error=False: anonymous callers may read; mutations raise AuthRequired in the services.
security = HTTPBearer(auto_error=False)

async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    if credentials is None:
        return ANONYMOUS
    try:
        data = decode_token(credentials.credentials)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    try:
        user_id = uuid.UUID(str(data.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject")
    return Identity(user_id=user_id)
