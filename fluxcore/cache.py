"""An expiring key-value cache for registry metadata."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, Union

from .errors import Missing
from .image import ImageID

EXPIRY = timedelta(hours=1)

_NOT_CACHED_HELP = """Image not yet cached

It takes time to initially cache all the images. Please wait.

If you have waited for a long time, check the flux logs. Potential
reasons for the error are: no internet, no cache, error with the remote
repository."""


class NotCachedError(Missing):
    """The requested key is not in the cache (or has expired)."""

    def __init__(self) -> None:
        super().__init__(help=_NOT_CACHED_HELP, err="memcache: cache miss")


class Keyer(Protocol):
    def key(self) -> str: ...


@dataclass(frozen=True)
class ManifestKey:
    """Cache key for the manifest of one tagged image."""

    username: str
    full_repository_path: str
    reference: str

    def key(self) -> str:
        # Only the username is included, so passwords never reach the cache.
        return "|".join(
            ["registryhistoryv2", self.username, self.full_repository_path, self.reference]
        )


@dataclass(frozen=True)
class TagKey:
    """Cache key for the tag list of a repository."""

    username: str
    full_repository_path: str

    def key(self) -> str:
        return "|".join(["registrytagsv2", self.username, self.full_repository_path])


def new_manifest_key(username: str, image_id: ImageID) -> ManifestKey:
    return ManifestKey(username, image_id.host_namespace_image(), image_id.tag)


def new_tag_key(username: str, image_id: ImageID) -> TagKey:
    return TagKey(username, image_id.host_namespace_image())


def _key_text(key: Union[str, Keyer]) -> str:
    return key if isinstance(key, str) else key.key()


class ExpiringCache:
    """A thread-safe in-memory cache whose entries expire after a fixed time."""

    def __init__(
        self,
        expiry: timedelta = EXPIRY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._expiry = expiry
        self._clock = clock
        self._items: dict[str, tuple[bytes, int]] = {}
        self._lock = threading.Lock()

    def _lookup(self, key: Union[str, Keyer]) -> tuple[bytes, int]:
        text = _key_text(key)
        with self._lock:
            entry = self._items.get(text)
            if entry is None:
                raise NotCachedError()
            if entry[1] <= self._clock():
                del self._items[text]
                raise NotCachedError()
            return entry

    def get_key(self, key: Union[str, Keyer]) -> bytes:
        """The stored value; raises NotCachedError on a miss."""
        return self._lookup(key)[0]

    def get_expiration(self, key: Union[str, Keyer]) -> datetime:
        """When the stored value expires; raises NotCachedError on a miss."""
        return datetime.fromtimestamp(self._lookup(key)[1], tz=timezone.utc)

    def set_key(self, key: Union[str, Keyer], value: Union[bytes, str]) -> None:
        data = value.encode() if isinstance(value, str) else bytes(value)
        expires = int(self._clock() + self._expiry.total_seconds())
        with self._lock:
            self._items[_key_text(key)] = (data, expires)