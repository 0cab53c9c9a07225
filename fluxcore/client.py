"""Registry clients: one backed by a remote registry, one by the cache."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from .cache import new_manifest_key, new_tag_key
from .credentials import Credentials
from .image import Image, ImageID, _parse_time, image_from_json

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class NoCacheError(Exception):
    """No cache is configured to serve registry data."""

    def __init__(self) -> None:
        super().__init__("no memcached")


def _created_time(v1_compatibility: str) -> Optional[datetime]:
    try:
        layer = json.loads(v1_compatibility)
    except (TypeError, ValueError):
        return None
    if not isinstance(layer, dict):
        return None
    raw = next((v for k, v in layer.items() if k.lower() == "created"), None)
    if not isinstance(raw, str):
        return None
    try:
        created = _parse_time(raw)
    except ValueError:
        return None
    return None if created == _ZERO_TIME else created


class Remote:
    """A client for a remote registry.

    The registry object provides tags(repository) and
    manifest(repository, reference); the latter returns the manifest's
    v1-compatibility history strings, topmost layer first, or None.
    """

    def __init__(self, registry: Any, cancel: Optional[Callable[[], None]] = None) -> None:
        self.registry = registry
        self._cancel = cancel

    def tags(self, image_id: ImageID) -> list[str]:
        return list(self.registry.tags(image_id.namespace_image()))

    def manifest(self, image_id: ImageID) -> Image:
        history = self.registry.manifest(image_id.namespace_image(), image_id.tag)
        if history is None:
            return Image()
        created = _created_time(history[0]) if history else None
        return Image(image_id, created)

    def cancel(self) -> None:
        if self._cancel is not None:
            self._cancel()


class CachedRegistryClient:
    """A client that answers from the cache only."""

    def __init__(
        self,
        creds: Credentials,
        reader: Any,
        expiry: timedelta,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.creds = creds
        self.reader = reader
        self.expiry = expiry
        self.cancelled = False
        self._logger = logger or logging.getLogger(__name__)

    def manifest(self, image_id: ImageID) -> Image:
        username = self.creds.creds_for(image_id.host).username
        value = self.reader.get_key(new_manifest_key(username, image_id))
        try:
            return image_from_json(value)
        except ValueError as exc:
            self._logger.error("decoding cached manifest: %s", exc)
            raise

    def tags(self, image_id: ImageID) -> list[str]:
        username = self.creds.creds_for(image_id.host).username
        value = self.reader.get_key(new_tag_key(username, image_id))
        try:
            tags = json.loads(value)
            if tags is None:
                return []
            if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
                raise ValueError("cached tags must be a list of strings")
        except ValueError as exc:
            self._logger.error("decoding cached tags: %s", exc)
            raise
        return tags

    def cancel(self) -> None:
        """Mark the client as finished; cache reads have nothing in flight."""
        self.cancelled = True


class CacheClientFactory:
    """Creates cache-backed clients for any host."""

    def __init__(
        self,
        creds: Credentials,
        cache: Any,
        cache_expiry: timedelta,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.creds = creds
        self.cache = cache
        self.cache_expiry = cache_expiry
        self._logger = logger or logging.getLogger(__name__)
        for host in creds.hosts():
            self._logger.info("host=%s username=%s", host, creds.creds_for(host).username)

    def client_for(self, host: str) -> CachedRegistryClient:
        if self.cache is None:
            raise NoCacheError()
        return CachedRegistryClient(self.creds, self.cache, self.cache_expiry, self._logger)