"""Keeps the registry cache warm by fetching tags and manifests."""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional

from .cache import new_manifest_key, new_tag_key
from .credentials import Credentials
from .image import ImageID

REFRESH_WHEN_EXPIRY_WITHIN = timedelta(minutes=1)
ASK_FOR_NEW_IMAGES_INTERVAL = timedelta(minutes=1)


def within_expiry_buffer(expiry: datetime, buffer: timedelta) -> bool:
    """Whether now plus buffer is past the expiry time."""
    now = datetime.now(timezone.utc) if expiry.tzinfo else datetime.now()
    return now + buffer > expiry


def _is_cancellation(exc: BaseException) -> bool:
    if isinstance(exc, TimeoutError):
        return True
    text = str(exc)
    return "deadline exceeded" in text or "request canceled" in text


@dataclass
class Warmer:
    """Fetches tags and manifests from remote registries into the cache."""

    client_factory: Any
    creds: Credentials
    expiry: timedelta
    writer: Any
    reader: Any
    burst: int = 1
    logger: Optional[logging.Logger] = None
    interval: timedelta = ASK_FOR_NEW_IMAGES_INTERVAL
    _log: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._log = self.logger or logging.getLogger(__name__)

    def loop(
        self, stop: threading.Event, images_to_fetch: Callable[[], Iterable[ImageID]]
    ) -> None:
        """Warm the given images now and every interval until stop is set."""
        if (
            self.client_factory is None
            or not self.expiry
            or self.writer is None
            or self.reader is None
        ):
            raise ValueError("registry warmer fields are not set")
        for image_id in images_to_fetch():
            self.warm(image_id)
        while not stop.wait(self.interval.total_seconds()):
            for image_id in images_to_fetch():
                self.warm(image_id)
        self._log.info("stopping=true")

    def warm(self, image_id: ImageID) -> None:
        """Refresh the cached tags of a repository and any stale manifests."""
        try:
            client = self.client_factory.client_for(image_id.host)
        except Exception as exc:
            self._log.error("err=%s", exc)
            return
        try:
            self._warm_with(client, image_id)
        finally:
            client.cancel()

    def _warm_with(self, client: Any, image_id: ImageID) -> None:
        username = self.creds.creds_for(image_id.host).username
        try:
            tags = client.tags(image_id)
        except Exception as exc:
            if not _is_cancellation(exc):
                self._log.error("requesting tags: %s", exc)
            return
        try:
            self.writer.set_key(
                new_tag_key(username, image_id),
                json.dumps(list(tags), separators=(",", ":")).encode(),
            )
        except Exception as exc:
            self._log.error("storing tags in cache: %s", exc)
            return

        to_update: list[ImageID] = []
        expired = False
        for tag in tags:
            tagged = image_id.with_new_tag(tag)
            try:
                expiry = self.reader.get_expiration(new_manifest_key(username, tagged))
            except Exception:
                to_update.append(tagged)
                continue
            if not within_expiry_buffer(expiry, REFRESH_WHEN_EXPIRY_WITHIN):
                continue
            expired = True
            to_update.append(tagged)

        if not to_update:
            return
        self._log.info("fetching=%s to-update=%d", image_id, len(to_update))
        if expired:
            self._log.info("expiring=%s", image_id.host_namespace_image())

        def fetch(tagged: ImageID) -> None:
            try:
                img = client.manifest(tagged)
            except Exception as exc:
                if not _is_cancellation(exc):
                    self._log.error("requesting manifests: %s", exc)
                return
            try:
                self.writer.set_key(
                    new_manifest_key(username, img.id), img.to_json().encode()
                )
            except Exception as exc:
                self._log.error("storing manifests in cache: %s", exc)

        with ThreadPoolExecutor(max_workers=max(1, min(self.burst, len(to_update)))) as pool:
            list(pool.map(fetch, to_update))
        self._log.info("updated=%s", image_id.host_namespace_image())