import structlog
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from workledger import config
from workledger.core.errors import AuthenticationError

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)

class Identity(BaseModel):
    """The authenticated caller."""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

class JwtIdentityResolver:
    """Resolves bearer tokens signed with the shared secret into identities."""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self.secret = secret or config.JWT_SECRET
        self.algorithm = algorithm or config.JWT_ALGORITHM

    def resolve(self, credential: str) -> Identity:
        if not credential:
            raise AuthenticationError("Missing credentials")

        try:
            payload = jwt.decode(credential, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning("Rejected bearer token", error=str(e))
            raise AuthenticationError("Invalid or expired token") from e

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationError("Token has no subject")

        return Identity(id=str(subject), email=payload.get("email"), display_name=payload.get("name"))

    def create_token(self, claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Sign a token for the given claims. Used by tooling and tests."""
        to_encode = claims.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

# Global resolver instance
_resolver = None

def get_resolver() -> JwtIdentityResolver:
    global _resolver
    if _resolver is None:
        _resolver = JwtIdentityResolver()
    return _resolver

async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """FastAPI dependency: the caller behind the Authorization: Bearer header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing credentials")

    resolver = getattr(request.app.state, "identity_resolver", None) or get_resolver()
    return resolver.resolve(credentials.credentials)
