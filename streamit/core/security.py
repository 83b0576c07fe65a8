import logging
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from streamit.core.config import settings

log = logging.getLogger(__name__)

http_bearer = HTTPBearer(auto_error=False)

ROLE_ADMIN = "admin"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"

class Principal(BaseModel):
    id: str
    role: str = "uploader"
    tenant: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

def _decode_token(token: str) -> dict | None:
    try:
        options = {"verify_aud": settings.REQUIRED_AUDIENCE is not None}
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE, options=options)
    except JWTError as e:
        log.debug("Ignoring invalid bearer token: %s", e)
        return None

def principal_from_claims(data: dict) -> Principal | None:
    user_id = data.get("id") or data.get("sub") or data.get("user_id")
    if not user_id:
        return None
    tenant = data.get("tenant")
    return Principal(id=str(user_id), role=str(data.get("role") or "uploader"), tenant=str(tenant) if tenant else None)

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal | None:
    # Identity is verified upstream; a missing or bad token means an anonymous caller.
    if creds is None:
        return None
    data = _decode_token(creds.credentials)
    if data is None:
        return None
    return principal_from_claims(data)

def issue_token(principal: Principal) -> str:
    """Mint a token the way the upstream identity provider does (local tooling and tests)."""
    claims = {"id": principal.id, "role": principal.role}
    if principal.tenant:
        claims["tenant"] = principal.tenant
    if settings.REQUIRED_AUDIENCE:
        claims["aud"] = settings.REQUIRED_AUDIENCE
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
