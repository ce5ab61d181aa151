"""
Supabase Auth client - thin wrapper over the GoTrue REST API.

Password handling and session issuance stay with Supabase; this client only
forwards requests and converts responses into typed results.
"""

from typing import Any
from uuid import UUID

import httpx
from structlog import get_logger

from creditgate.exceptions import AuthenticationError, AuthProviderError, UpstreamServiceError
from creditgate.models.domain import AuthenticatedUser, AuthUserRecord, SignInResult, SignUpResult

logger = get_logger(__name__)

SERVICE = "supabase_auth"


def _error_message(response: httpx.Response) -> str:
    """Pull the human-readable message out of a GoTrue error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


class SupabaseAuthClient:
    """Supabase Auth (GoTrue) client."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        service_role_key: str = "",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    def _public_headers(self) -> dict[str, str]:
        return {"apikey": self.anon_key}

    def _admin_headers(self) -> dict[str, str]:
        if not self.service_role_key:
            raise UpstreamServiceError(SERVICE, "Supabase service role key is not configured")
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.http_client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.error("supabase_request_error", path=path, error=str(exc))
            raise UpstreamServiceError(SERVICE, f"Auth service unreachable: {exc}") from exc

    async def sign_up(self, email: str, password: str) -> SignUpResult:
        """
        Register a new email/password user.

        Raises:
            AuthProviderError: Supabase rejected the signup (e.g. weak password)
            UpstreamServiceError: Supabase unreachable or failing
        """
        response = await self._request(
            "POST",
            "/signup",
            headers=self._public_headers(),
            json={"email": email, "password": password},
        )
        if response.status_code >= 500:
            raise UpstreamServiceError(SERVICE, _error_message(response), response.status_code)
        if response.is_error:
            message = _error_message(response)
            logger.info("supabase_signup_rejected", status=response.status_code, error=message)
            raise AuthProviderError(message, response.status_code)

        body = response.json()
        # With email confirmation on, GoTrue returns the user object itself;
        # with autoconfirm it returns a session wrapping the user.
        user = body.get("user") if "user" in body else body
        return SignUpResult(user=user or None)

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        """
        Exchange email/password for a session.

        Raises:
            AuthProviderError: Invalid credentials or unconfirmed email
            UpstreamServiceError: Supabase unreachable or failing
        """
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            headers=self._public_headers(),
            json={"email": email, "password": password},
        )
        if response.status_code >= 500:
            raise UpstreamServiceError(SERVICE, _error_message(response), response.status_code)
        if response.is_error:
            message = _error_message(response)
            logger.info("supabase_login_rejected", status=response.status_code, error=message)
            raise AuthProviderError(message, response.status_code)

        body = response.json()
        user = body.pop("user", {}) or {}
        return SignInResult(session=body, user=user)

    async def get_user(self, access_token: str) -> AuthenticatedUser:
        """
        Resolve an access token to the user it was issued for.

        Raises:
            AuthenticationError: Token invalid, expired or revoked
            UpstreamServiceError: Supabase unreachable or failing
        """
        response = await self._request(
            "GET",
            "/user",
            headers={**self._public_headers(), "Authorization": f"Bearer {access_token}"},
        )
        if response.status_code >= 500:
            raise UpstreamServiceError(SERVICE, _error_message(response), response.status_code)
        if response.is_error:
            raise AuthenticationError(_error_message(response))

        body = response.json()
        try:
            user_id = UUID(str(body["id"]))
        except (KeyError, ValueError) as exc:
            raise AuthenticationError("Token resolved to a user without an id") from exc
        return AuthenticatedUser(id=user_id, email=body.get("email"))

    async def list_users(self, per_page: int = 1000) -> list[AuthUserRecord]:
        """List every auth user (service role required)."""
        headers = self._admin_headers()
        users: list[AuthUserRecord] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                "/admin/users",
                headers=headers,
                params={"page": page, "per_page": per_page},
            )
            if response.is_error:
                raise UpstreamServiceError(SERVICE, _error_message(response), response.status_code)

            batch = response.json().get("users", [])
            users.extend(
                AuthUserRecord(id=UUID(str(item["id"])), email=item.get("email")) for item in batch
            )
            if len(batch) < per_page:
                return users
            page += 1

    async def delete_user(self, user_id: UUID) -> None:
        """Delete an auth user (service role required)."""
        response = await self._request(
            "DELETE",
            f"/admin/users/{user_id}",
            headers=self._admin_headers(),
        )
        if response.is_error:
            raise UpstreamServiceError(SERVICE, _error_message(response), response.status_code)
        logger.info("supabase_user_deleted", user_id=str(user_id))

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
