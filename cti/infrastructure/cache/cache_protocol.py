"""Cache protocol for the subtype layer (DIP). MemoryCache is the bundled implementation."""

from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for cache backends used by the discriminator resolver and column validator."""

    def is_available(self) -> bool:
        """Return True if cache is usable."""
        ...

    def get(self, key: str) -> Any:
        """Return cached value or None."""
        ...

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store value with optional TTL in seconds."""
        ...

    def delete(self, key: str) -> None:
        """Remove key from cache."""
        ...

    def clear(self) -> None:
        """Remove every key from cache."""
        ...
