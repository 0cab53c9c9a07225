"""Access to container registries: repositories, images, mocks and metrics."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Sequence

from .cache import NotCachedError
from .image import Image, ImageID, sort_by_created_desc

_LABEL_SUCCESS = "success"
_LABEL_REQUEST_KIND = "kind"
_REQUEST_KIND_TAGS = "tags"
_REQUEST_KIND_METADATA = "metadata"

Observer = Callable[[dict, float], None]


class _Histogram:
    """Records durations by label set, in memory."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self.observations: list[tuple[dict, float]] = []

    def observe(self, labels: dict, seconds: float) -> None:
        with self._lock:
            self.observations.append((dict(labels), seconds))


_registry_duration = _Histogram("flux_registry_fetch_duration_seconds")
_remote_duration = _Histogram("flux_client_fetch_duration_seconds")


class Registry:
    """Fetches repositories and images through clients from a factory.

    Image references may omit parts, which take Docker Hub defaults:
    ``helloworld`` is ``index.docker.io/library/helloworld``.
    """

    def __init__(
        self,
        factory: Any,
        logger: Optional[logging.Logger] = None,
        connections: int = 1,
    ) -> None:
        self.factory = factory
        self.connections = connections
        self._logger = logger or logging.getLogger(__name__)

    def get_repository(self, image_id: ImageID) -> list[Image]:
        """All tagged images of a repository, newest first."""
        client = self.factory.client_for(image_id.host)
        try:
            tags = client.tags(image_id)
        except Exception:
            client.cancel()
            raise
        return self._tags_to_repository(client, image_id, tags)

    def get_image(self, image_id: ImageID) -> Image:
        client = self.factory.client_for(image_id.host)
        try:
            return client.manifest(image_id)
        except Exception:
            client.cancel()
            raise

    def _tags_to_repository(
        self, client: Any, image_id: ImageID, tags: Sequence[str]
    ) -> list[Image]:
        try:
            if not tags:
                return []

            def fetch(tag: str) -> Image:
                try:
                    return client.manifest(image_id.with_new_tag(tag))
                except NotCachedError:
                    raise
                except Exception as exc:
                    self._logger.error("registry-metadata-err: %s", exc)
                    raise

            workers = max(1, min(self.connections, len(tags)))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                images = list(pool.map(fetch, tags))
            return sort_by_created_desc(images)
        finally:
            client.cancel()


class MockClient:
    """A client whose answers come from the given functions."""

    def __init__(
        self,
        manifest: Callable[[ImageID], Image],
        tags: Callable[[ImageID], list[str]],
    ) -> None:
        self._manifest = manifest
        self._tags = tags
        self.cancel_count = 0
        self._lock = threading.Lock()

    def tags(self, image_id: ImageID) -> list[str]:
        return self._tags(image_id)

    def manifest(self, image_id: ImageID) -> Image:
        return self._manifest(image_id)

    def cancel(self) -> None:
        """Count the cancellation; there is no request in flight."""
        with self._lock:
            self.cancel_count += 1


class MockClientFactory:
    """Hands out one client for every host, or raises the given error."""

    def __init__(self, client: Any, err: Optional[BaseException] = None) -> None:
        self.client = client
        self.err = err

    def client_for(self, host: str) -> Any:
        if self.err is not None:
            raise self.err
        return self.client


class MockRegistry:
    """A registry answering from a fixed list of images."""

    def __init__(self, images: Sequence[Image], err: Optional[BaseException] = None) -> None:
        self.images = list(images)
        self.err = err

    def get_repository(self, image_id: ImageID) -> list[Image]:
        if self.err is not None:
            raise self.err
        wanted = image_id.namespace_image()
        return [img for img in self.images if img.id.namespace_image() == wanted]

    def get_image(self, image_id: ImageID) -> Image:
        wanted = str(image_id)
        for img in self.images:
            if str(img.id) == wanted:
                return img
        raise LookupError("not found")


def _timed(observe: Observer, labels: dict, call: Callable[[], Any]) -> Any:
    start = time.monotonic()
    success = False
    try:
        result = call()
        success = True
        return result
    finally:
        observe(
            {**labels, _LABEL_SUCCESS: "true" if success else "false"},
            time.monotonic() - start,
        )


class InstrumentedRegistry:
    """Records the duration and success of each registry request."""

    def __init__(self, next_registry: Any, observe: Optional[Observer] = None) -> None:
        self.next = next_registry
        self._observe = observe or _registry_duration.observe

    def get_repository(self, image_id: ImageID) -> list[Image]:
        return _timed(self._observe, {}, lambda: self.next.get_repository(image_id))

    def get_image(self, image_id: ImageID) -> Image:
        return _timed(self._observe, {}, lambda: self.next.get_image(image_id))


class InstrumentedClient:
    """Records the duration and success of each remote client request."""

    def __init__(self, next_client: Any, observe: Optional[Observer] = None) -> None:
        self.next = next_client
        self._observe = observe or _remote_duration.observe

    def tags(self, image_id: ImageID) -> list[str]:
        return _timed(
            self._observe,
            {_LABEL_REQUEST_KIND: _REQUEST_KIND_TAGS},
            lambda: self.next.tags(image_id),
        )

    def manifest(self, image_id: ImageID) -> Image:
        return _timed(
            self._observe,
            {_LABEL_REQUEST_KIND: _REQUEST_KIND_METADATA},
            lambda: self.next.manifest(image_id),
        )

    def cancel(self) -> None:
        self.next.cancel()