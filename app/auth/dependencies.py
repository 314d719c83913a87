# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication and authorization.
#
# Tokens are read from the Authorization header (API clients) or the
# sb-access-token cookie (browsers).
#
# Supports both:
# - ES256 (new Supabase JWT signing keys) via JWKS
# - HS256 (legacy Supabase JWT secret) when SUPABASE_JWT_SECRET is set
#
# Usage:
#   from app.auth import get_current_user, require_role, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
#
#   @router.get("/admin-only")
#   async def admin_only(profile: Profile = Depends(require_role(UserRole.ADMIN))):
#       ...
# =============================================================================

import logging
import time
from typing import Any, Optional
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.cookies import ACCESS_TOKEN_COOKIE
from app.auth.models import AuthUser
from app.config import settings
from app.exceptions import AuthenticationError, PermissionDeniedError, ProfileNotFoundError
from core.models.profile import Profile
from core.models.roles import Permission, ResourceKind, UserRole
from core.permissions import has_permission
from core.services.profile_service import ProfileService

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor (cookie is the fallback, so never auto-error)
security_optional = HTTPBearer(auto_error=False)

# Cache for JWKS keys
_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour


def _get_jwks_url() -> str:
    """Get the JWKS URL from Supabase URL."""
    supabase_url = settings.SUPABASE_URL.rstrip('/')
    return f"{supabase_url}/auth/v1/.well-known/jwks.json"


def _fetch_jwks() -> dict:
    """Fetch JWKS from Supabase with caching."""
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()

    # Return cached if valid
    if _jwks_cache and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        jwks_url = _get_jwks_url()
        response = httpx.get(jwks_url, timeout=settings.SUPABASE_TIMEOUT_SECONDS)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = current_time
        logger.debug(f"Fetched JWKS from {jwks_url}")
        return _jwks_cache
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Return cached even if expired, as fallback
        if _jwks_cache:
            return _jwks_cache
        return {"keys": []}


def _hs256_secret() -> str:
    """The legacy shared secret; HS256 tokens are refused when none is configured."""
    if not settings.SUPABASE_JWT_SECRET:
        raise AuthenticationError(
            "Invalid token: HS256 tokens are not accepted",
            code="TOKEN_INVALID",
        )
    return settings.SUPABASE_JWT_SECRET


def _get_signing_key(token: str) -> tuple[Any, str]:
    """
    Get the appropriate signing key for a token.

    Returns:
        Tuple of (key, algorithm) to use for verification

    Raises:
        AuthenticationError: If the header is unreadable, the token claims
            HS256 without a configured secret, or no JWKS key matches its kid
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError:
        raise AuthenticationError("Invalid token: malformed header", code="TOKEN_INVALID")

    alg = unverified_header.get("alg")
    kid = unverified_header.get("kid")

    if alg == "HS256":
        return _hs256_secret(), "HS256"

    # ES256 and friends only verify against a published JWKS key
    if alg and kid:
        for key in _fetch_jwks().get("keys", []):
            if key.get("kid") == kid:
                return key, alg

    logger.warning(f"No signing key for alg={alg}, kid={kid}")
    raise AuthenticationError("Invalid token: unknown signing key", code="TOKEN_INVALID")


def verify_access_token(token: str) -> AuthUser:
    """
    Verify a Supabase access token locally.

    Args:
        token: The raw JWT

    Returns:
        AuthUser for the token's subject

    Raises:
        AuthenticationError: If the token is expired, malformed or forged
    """
    try:
        signing_key, algorithm = _get_signing_key(token)
        payload = jwt.decode(
            token,
            signing_key,
            algorithms=[algorithm],
            audience="authenticated",
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired", code="TOKEN_EXPIRED",
                                  suggestion="Refresh the session or sign in again")
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {e}", code="TOKEN_INVALID")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token: missing user ID", code="TOKEN_INVALID")

    try:
        UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token: malformed user ID", code="TOKEN_INVALID")

    return AuthUser(id=user_id, email=payload.get("email"), token=token)


def extract_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
) -> AuthUser:
    """
    Extract and validate the user from a Supabase JWT.

    This dependency:
    1. Reads the Bearer token, or the sb-access-token cookie
    2. Verifies the JWT signature (supports ES256 and HS256)
    3. Validates the token hasn't expired
    4. Returns an AuthUser with the user's ID and email

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    token = extract_access_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = verify_access_token(token)
    except AuthenticationError as e:
        logger.warning(f"JWT validation failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug(f"Authenticated user: {user.id}")
    return user


async def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_optional),
) -> Optional[AuthUser]:
    """
    Optionally get the current user.

    Returns None if no token is provided or it is invalid, instead of
    raising an error.
    """
    token = extract_access_token(request, credentials)
    if not token:
        return None
    try:
        return verify_access_token(token)
    except AuthenticationError:
        return None


async def get_current_profile(user: AuthUser = Depends(get_current_user)) -> Profile:
    """
    The signed-in user's profile.

    Raises:
        ProfileNotFoundError: 404 if the identity has no profile yet
    """
    profile = await ProfileService.get_profile(user.id)
    if profile is None:
        raise ProfileNotFoundError(user.id)
    return profile


def require_role(*roles: UserRole):
    """
    Dependency factory: the caller's profile must have one of `roles`.

    Usage:
        @router.get("/", dependencies=[Depends(require_role(UserRole.ADMIN))])
    """
    allowed = frozenset(roles)

    async def dependency(profile: Profile = Depends(get_current_profile)) -> Profile:
        if profile.role not in allowed:
            logger.warning(f"User {profile.id} ({profile.role.value}) denied; needs {sorted(r.value for r in allowed)}")
            raise PermissionDeniedError(
                "You do not have permission to do this",
                suggestion="Ask an administrator for access",
            )
        return profile

    return dependency


def require_permission(permission: Permission, resource_kind: ResourceKind | None = None):
    """Dependency factory: the caller's role must hold `permission`."""

    async def dependency(profile: Profile = Depends(get_current_profile)) -> Profile:
        if not has_permission(profile.role, permission, resource_kind):
            logger.warning(f"User {profile.id} lacks {permission.value}")
            raise PermissionDeniedError(
                "You do not have permission to do this",
                suggestion="Ask an administrator for access",
            )
        return profile

    return dependency
