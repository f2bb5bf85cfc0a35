"""
Supabase Storage client using httpx sync client.
Called from worker threads (asyncio.to_thread) by the unlock flow and directly by dashboard routes.
"""
import logging
import time
from urllib.parse import quote

import httpx
import pybreaker
import redis

from lockflow.services.storage.base import Storage, StorageError
from lockflow.utils.metrics import storage_request_duration_seconds

logger = logging.getLogger(__name__)


class SupabaseStorage(Storage):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        *,
        breaker: pybreaker.CircuitBreaker | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = f"{base_url.rstrip('/')}/storage/v1"
        self._api_key = api_key
        self._bucket = bucket
        self._breaker = breaker
        self._timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                headers={
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {self._api_key}",
                },
            )
        return self._client

    def create_signed_download_url(self, path: str, ttl_seconds: int) -> str:
        return self._call("createSignedUrl", self._sign, path, ttl_seconds)

    def remove(self, paths: list[str]) -> None:
        if paths:
            self._call("remove", self._remove, paths)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _call(self, operation: str, func, *args):
        start = time.time()
        try:
            if self._breaker is not None:
                return self._breaker.call(func, *args)
            return func(*args)
        except pybreaker.CircuitBreakerError as e:
            raise StorageError(f"storage circuit open: {operation}") from e
        except redis.RedisError as e:
            # Breaker state lives in Redis and is read on every call
            raise StorageError(f"storage breaker state unavailable: {operation}") from e
        finally:
            storage_request_duration_seconds.labels(operation=operation).observe(time.time() - start)

    def _sign(self, path: str, ttl_seconds: int) -> str:
        url = f"{self._base_url}/object/sign/{self._bucket}/{quote(path.lstrip('/'))}"
        try:
            resp = self.client.post(url, json={"expiresIn": ttl_seconds})
        except httpx.HTTPError as e:
            raise StorageError(f"createSignedUrl failed: {e}") from e
        if resp.status_code >= 400:
            logger.warning(
                "storage_sign_error",
                extra={"path": path, "status_code": resp.status_code},
            )
            raise StorageError(f"createSignedUrl -> {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise StorageError("createSignedUrl returned invalid JSON") from e
        signed = (data.get("signedURL") or data.get("signedUrl")) if isinstance(data, dict) else None
        if not signed:
            raise StorageError("createSignedUrl returned no URL")
        if signed.startswith("http"):
            return signed
        return f"{self._base_url}{signed}"

    def _remove(self, paths: list[str]) -> None:
        try:
            resp = self.client.request(
                "DELETE",
                f"{self._base_url}/object/{self._bucket}",
                json={"prefixes": paths},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"remove failed: {e}") from e
        if resp.status_code >= 400:
            raise StorageError(f"remove -> {resp.status_code}: {resp.text[:200]}")
