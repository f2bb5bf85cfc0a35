"""
Identity provider client (Supabase Auth) using httpx sync client.
Only the creator dashboard needs a user; unlocking is anonymous.
"""
import logging
from collections.abc import Callable

import httpx
from pydantic import BaseModel

from lockflow.unlock.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

AuthChangeCallback = Callable[[str, "AuthUser | None"], None]


class AuthUser(BaseModel):
    id: str
    email: str | None = None


class SupabaseIdentityProvider:
    """
    get_current_user(access_token) -> AuthUser | None.
    on_auth_change(callback) registers a listener for TOKEN_VERIFIED / TOKEN_REJECTED events.
    """

    def __init__(self, base_url: str, api_key: str, *, timeout: float = 10.0) -> None:
        self._base_url = f"{base_url.rstrip('/')}/auth/v1"
        self._api_key = api_key
        self._timeout = timeout
        self._client: httpx.Client | None = None
        self._listeners: list[AuthChangeCallback] = []

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def get_current_user(self, access_token: str | None) -> AuthUser | None:
        if not access_token:
            return None
        try:
            resp = self.client.get(
                f"{self._base_url}/user",
                headers={"apikey": self._api_key, "Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            logger.warning("identity_request_failed", extra={"error": str(e)})
            raise CollaboratorUnavailable("Identity provider unavailable") from e

        if resp.status_code in (401, 403):
            self._emit("TOKEN_REJECTED", None)
            return None
        if resp.status_code >= 400:
            logger.warning("identity_error", extra={"status_code": resp.status_code})
            raise CollaboratorUnavailable("Identity provider unavailable")

        data = resp.json()
        user = AuthUser(id=data["id"], email=data.get("email"))
        self._emit("TOKEN_VERIFIED", user)
        return user

    def on_auth_change(self, callback: AuthChangeCallback) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _emit(self, event: str, user: AuthUser | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, user)
            except Exception:
                logger.exception("auth_listener_failed", extra={"event": event})
