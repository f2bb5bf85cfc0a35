from abc import ABC, abstractmethod


class StorageError(Exception):
    """Object storage call failed (network, non-2xx response or open circuit)."""


class Storage(ABC):
    @abstractmethod
    def create_signed_download_url(self, path: str, ttl_seconds: int) -> str:
        """Time-limited URL granting read access to a private object."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, paths: list[str]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass
