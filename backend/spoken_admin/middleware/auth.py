"""
Spoken Admin API — Authentication Gate
========================================

What:  Resolves the caller's identity for a request.
Why:   Business handlers must never run for an anonymous caller on a route
       that requires authentication.
How:   The pipeline calls authenticate(); it delegates to an IdentityProvider
       and maps every failure to AuthenticationError with a tagged AuthFailure.
Who:   Called by ApiPipeline on routes with `require_auth=True`.

Failure Mapping:
    No token on the request          → SESSION_MISSING  (logged at DEBUG)
    Provider says token expired      → SESSION_EXPIRED  (logged at INFO)
    Provider rejects token           → SESSION_INVALID  (logged at INFO)
    Provider down / malformed reply  → PROVIDER_ERROR   (logged at ERROR)

    Clients cannot tell these apart: all four become {"error": "Unauthorized"}.

Provider:
    SupabaseIdentityProvider looks the access token up with Supabase Auth's
    REST endpoint (GET /auth/v1/user). The token comes from the
    `Authorization: Bearer <token>` header, or from the session cookie when
    the header is absent (browser requests from the admin UI).

Roles:
    viewer < editor < admin. The caller's role is read from the user's
    `app_metadata.role`, which only the service role can write. Routes that
    declare a required role check it with has_permission(); a caller without
    a role ranks below viewer.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx
from starlette.requests import Request

from spoken_admin.exceptions import AuthFailure, AuthenticationError

logger = logging.getLogger(__name__)

# Supabase error codes that mean "the session existed but is over"
_EXPIRED_ERROR_CODES = frozenset({"session_expired", "session_not_found"})


class UserRole(str, enum.Enum):
    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"


_ROLE_RANK = {UserRole.VIEWER: 1, UserRole.EDITOR: 2, UserRole.ADMIN: 3}


def has_permission(role: Optional[str], required: UserRole) -> bool:
    """True when `role` ranks at or above `required`. Unknown roles rank 0."""
    try:
        rank = _ROLE_RANK[UserRole(role)]
    except ValueError:
        rank = 0
    return rank >= _ROLE_RANK[required]


@dataclass(frozen=True)
class Caller:
    """Identity resolved for a request."""

    id: str
    email: Optional[str] = None
    role: Optional[str] = None


class IdentityProvider(Protocol):
    """External collaborator that knows who is behind a request."""

    async def resolve_caller(self, request: Request) -> Caller:
        """Return the caller or raise AuthenticationError."""
        ...


def extract_access_token(request: Request, cookie_name: str) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token
    return None


class SupabaseIdentityProvider:
    """
    Identity provider backed by Supabase Auth.

    Args:
        base_url:    Supabase project URL (https://<ref>.supabase.co)
        anon_key:    Project anon key, sent as the `apikey` header
        cookie_name: Cookie holding the access token for browser sessions
        timeout:     Seconds before a lookup counts as a provider error
        client:      Optional pre-built httpx.AsyncClient (tests pass one with
                     a MockTransport)

    No retries: a failed lookup is a 401 for this request, and the client
    decides whether to try again.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        cookie_name: str = "sb-access-token",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.cookie_name = cookie_name
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def resolve_caller(self, request: Request) -> Caller:
        token = extract_access_token(request, self.cookie_name)
        if not token:
            raise AuthenticationError(AuthFailure.SESSION_MISSING)

        if not self.base_url:
            raise AuthenticationError(
                AuthFailure.PROVIDER_ERROR,
                context={"reason": "identity provider URL not configured"},
            )

        try:
            response = await self._client.get(
                f"{self.base_url}/auth/v1/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(
                AuthFailure.PROVIDER_ERROR,
                context={"error_type": type(exc).__name__},
            ) from exc

        if response.status_code in (401, 403):
            error_code = self._error_code(response)
            failure = (
                AuthFailure.SESSION_EXPIRED
                if error_code in _EXPIRED_ERROR_CODES
                else AuthFailure.SESSION_INVALID
            )
            raise AuthenticationError(failure, context={"error_code": error_code})

        if response.status_code != 200:
            raise AuthenticationError(
                AuthFailure.PROVIDER_ERROR,
                context={"status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationError(
                AuthFailure.PROVIDER_ERROR,
                context={"reason": "response body is not JSON"},
            ) from exc

        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            raise AuthenticationError(
                AuthFailure.PROVIDER_ERROR,
                context={"reason": "user payload has no id"},
            )

        app_metadata = payload.get("app_metadata") or {}
        role = app_metadata.get("role") if isinstance(app_metadata, dict) else None
        return Caller(id=str(user_id), email=payload.get("email"), role=role)

    async def health_check(self) -> bool:
        """True when the Supabase Auth health endpoint answers 200."""
        if not self.base_url:
            return False
        try:
            response = await self._client.get(
                f"{self.base_url}/auth/v1/health",
                headers={"apikey": self.anon_key},
            )
        except httpx.HTTPError as exc:
            logger.warning("Identity provider health check failed: %s", exc)
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _error_code(response: httpx.Response) -> Optional[str]:
        try:
            payload: Dict[str, Any] = response.json()
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        return payload.get("error_code")


async def authenticate(request: Request, provider: IdentityProvider) -> str:
    """Resolve the caller id for `request` or raise AuthenticationError."""
    caller = await authenticate_caller(request, provider)
    return caller.id


async def authenticate_caller(request: Request, provider: IdentityProvider) -> Caller:
    """
    Resolve the full Caller for `request` or raise AuthenticationError.

    Exceptions other than AuthenticationError raised by the provider are
    folded into PROVIDER_ERROR, so the pipeline only ever sees one error type.
    """
    try:
        caller = await provider.resolve_caller(request)
    except AuthenticationError as exc:
        _log_failure(request, exc)
        raise
    except Exception as exc:
        logger.error(
            "Identity provider raised %s for %s %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc_info=True,
        )
        raise AuthenticationError(
            AuthFailure.PROVIDER_ERROR,
            context={"error_type": type(exc).__name__},
        ) from exc

    if not caller.id:
        error = AuthenticationError(AuthFailure.PROVIDER_ERROR, context={"reason": "empty caller id"})
        _log_failure(request, error)
        raise error

    return caller


def _log_failure(request: Request, exc: AuthenticationError) -> None:
    if exc.failure is AuthFailure.SESSION_MISSING:
        level = logging.DEBUG
    elif exc.failure is AuthFailure.PROVIDER_ERROR:
        level = logging.ERROR
    else:
        level = logging.INFO
    logger.log(
        level,
        "Authentication failed (%s) for %s %s | Context: %s",
        exc.failure.value,
        request.method,
        request.url.path,
        exc.context,
    )
