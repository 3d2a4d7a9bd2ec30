"""
Authentication utilities for Supabase JWT verification.

The frontend signs in with Supabase and sends the JWT in the Authorization
header. This module verifies the JWT and extracts the acting user. Public
endpoints (reservation requests, sale applications) use get_optional_user.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from typing import Optional
import requests
from sales_engine.core.config import settings

# Security schemes for Bearer token
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


class User:
    """Acting user extracted from the JWT token."""
    def __init__(self, user_id: str, email: str, role: Optional[str] = None, name: Optional[str] = None):
        self.id = user_id
        self.email = email
        self.role = (role or "CLIENT").upper()
        self.name = name or email


# Cache for JWKS keys (to avoid fetching on every request)
_jwks_cache = None


def get_supabase_jwks():
    """
    Fetch Supabase's JSON Web Key Set (JWKS) for JWT verification.

    Returns:
        dict: JWKS containing public keys for token verification
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    try:
        jwks_url = f"{settings.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
        response = requests.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        return _jwks_cache
    except requests.RequestException as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch JWKS from Supabase: {str(e)}",
        )


def verify_token(token: str) -> dict:
    """
    Verify a Supabase JWT and return the decoded payload.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        jwks = get_supabase_jwks()
        payload = jwt.decode(
            token,
            jwks,
            algorithms=["ES256", "RS256"],
            audience="authenticated",
            options={"verify_aud": True}
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_from_payload(payload: dict) -> User:
    """
    Build the acting user from a verified JWT payload.

    The business role lives in app_metadata.role (set by staff tooling); the
    top-level "role" claim is Supabase's own ("authenticated") and is only
    used as a fallback.
    """
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )

    app_metadata = payload.get("app_metadata") or {}
    user_metadata = payload.get("user_metadata") or {}
    role = app_metadata.get("role")
    if not role and payload.get("role") not in (None, "authenticated", "anon"):
        role = payload.get("role")

    return User(
        user_id=user_id,
        email=payload.get("email"),
        role=role,
        name=user_metadata.get("full_name") or user_metadata.get("name"),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    FastAPI dependency to get the authenticated user from the JWT token.

    Raises:
        HTTPException: If token is missing, invalid, or expired
    """
    return user_from_payload(verify_token(credentials.credentials))


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if credentials is None:
        return None
    return user_from_payload(verify_token(credentials.credentials))
