"""
Staff authentication for dashboard-facing routes.

The dashboard signs in through Supabase Auth and forwards the access token.
Tokens are HS256 JWTs signed with the project's JWT secret; the staff
principal is the "sub" claim.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from callorders.config import get_settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def verify_staff_token(token: str, secret: str, audience: str) -> Optional[str]:
    """Return the principal id for a valid token, None otherwise."""
    import jwt as pyjwt

    if not secret:
        logger.error("SUPABASE_JWT_SECRET not set - rejecting staff token")
        return None
    try:
        payload = pyjwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience,
        )
    except pyjwt.ExpiredSignatureError:
        logger.info("Staff token expired")
        return None
    except pyjwt.InvalidTokenError as e:
        logger.info("Staff token rejected: %s", str(e))
        return None

    sub = payload.get("sub")
    return str(sub) if sub else None


async def get_current_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Dependency returning the authenticated staff user id."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(status_code=401, detail="missing_auth")

    settings = get_settings()
    principal = verify_staff_token(
        credentials.credentials,
        settings.supabase_jwt_secret,
        settings.supabase_jwt_audience,
    )
    if principal is None:
        raise HTTPException(status_code=401, detail="invalid_auth")
    return principal
