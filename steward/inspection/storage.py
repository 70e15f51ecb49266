"""Object storage interface for inspection media."""

from abc import ABC, abstractmethod


class MediaStorage(ABC):
    """Stores uploaded photos and videos and hands back public URLs."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store an object and return its public URL."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass


class InMemoryMediaStorage(MediaStorage):
    """In-memory MediaStorage for testing and development."""

    def __init__(self, public_url: str = "https://media.invalid") -> None:
        self._public_url = public_url.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return f"{self._public_url}/{key}"

    async def delete(self, key: str) -> None:
        self.objects.pop(key, None)
